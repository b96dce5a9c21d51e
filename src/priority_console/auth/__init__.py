"""
priority_console.auth

Authentication package.

Responsibilities:
- Signed session tokens and the in-memory session store.
- Local credential set and the external identity provider client.
- The authentication gateway (FastAPI dependency) producing a typed `Principal`.
- Outbound authorization headers derived from a principal.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Nothing in this package imports from `api/` or `orchestrator/`.
