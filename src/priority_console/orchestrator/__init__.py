"""
priority_console.orchestrator

Priority orchestration package.

Responsibilities:
- Status fan-out and primary/secondary state transitions per consistency mode.
- Sequential bulk application with incremental progress.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Call sites (routers) use PriorityOrchestrator and BulkOperationRegistry only.
