"""
priority_console.endpoint_clients

HTTP client boundaries for the managed service endpoints.

Responsibilities:
- Issue status and priority calls exactly as the topology describes them.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Clients raise raw httpx errors; translation into domain errors happens in the orchestrator.
