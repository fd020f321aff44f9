"""Background workers for scheduled tasks."""

from emdr.workers.session_cleanup import SessionCleanupWorker

__all__ = [
    "SessionCleanupWorker",
]
