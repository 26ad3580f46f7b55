"""HTTP routers; each maps engine operations onto REST endpoints."""
