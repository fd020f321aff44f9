"""Session cleanup worker for removing expired login sessions."""

from loguru import logger

from emdr.core.exceptions import StorageError
from emdr.db.session import async_session_maker
from emdr.services.auth_service import AuthService


class SessionCleanupWorker:
    """Worker deleting sessions past their expiry date."""

    def __init__(self, session_maker=async_session_maker):
        self.session_maker = session_maker

    async def run(self) -> int:
        """Run the cleanup. Returns the number of deleted sessions."""
        async with self.session_maker() as db:
            try:
                deleted_count = await AuthService(db).cleanup_expired_sessions()
            except StorageError as e:
                logger.error(f"Session cleanup error: {e}")
                return 0

        if deleted_count:
            logger.info(f"Deleted {deleted_count} expired sessions")
        return deleted_count
