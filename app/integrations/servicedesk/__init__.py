"""ServiceDesk Plus integration: token-shielding read proxy.

Components:
- client.py: paginated v3 REST client with timeout + retry/backoff
- normalization.py: flattening of account and ticket records
- filters.py: date range and technician exclusion predicates
- security.py: admin sync key check
- endpoints.py: FastAPI routes (accounts, requests, accounts sync)
"""

from .endpoints import router as router  # re-export for app include

__all__ = ["router"]
