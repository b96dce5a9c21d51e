"""
priority_console.api

API package for the priority console backend.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring, error rendering and request models.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer stays thin: request validation + auth + delegation to the
# orchestrator and auth components.
