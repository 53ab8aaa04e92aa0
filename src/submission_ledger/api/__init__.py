"""HTTP ingress for the submission ledger (FastAPI)."""
