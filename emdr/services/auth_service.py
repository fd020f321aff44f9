"""Auth service for login sessions."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from loguru import logger
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from emdr.core.config import get_settings
from emdr.core.security import create_session_token, decode_session_token, get_token_data
from emdr.models.session import LoginSession
from emdr.models.user import User
from emdr.schemas.auth import UserInfo
from emdr.services.base_service import BaseService
from emdr.services.user_service import UserService

settings = get_settings()


@dataclass
class LoginResult:
    """Successful login: signed token plus identity."""

    token: str
    user: UserInfo
    expires_at: datetime


class AuthService(BaseService[LoginSession]):
    """Authentication service backed by server-side session rows."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, LoginSession)
        self.user_service = UserService(db)

    async def login(self, username: str, password: str) -> LoginResult | None:
        """Authenticate and open a new session."""
        user = await self.user_service.authenticate(username, password)
        if not user:
            logger.warning(f"Failed login for '{username}'")
            return None

        expires_at = datetime.now(timezone.utc) + timedelta(
            days=settings.session_expire_days
        )
        session = await self.create(LoginSession(user_id=user.id, expires_at=expires_at))
        token = create_session_token(user.id, session.id, expires_at)

        logger.info(f"User '{user.username}' logged in")
        return LoginResult(
            token=token,
            user=to_user_info(user),
            expires_at=expires_at,
        )

    async def register(
        self,
        username: str,
        password: str,
        display_name: str | None = None,
    ) -> UserInfo | None:
        """Create an account. Returns None when the username is taken."""
        if await self.user_service.get_by_username(username):
            return None
        user = await self.user_service.create_user(username, password, display_name)
        logger.info(f"User '{username}' registered")
        return to_user_info(user)

    async def logout(self, token: str) -> bool:
        """Delete the session behind a token. Unknown tokens are ignored."""
        payload = get_token_data(token)
        if not payload or not payload.get("sid"):
            return False
        session = await self.get_by_id(payload["sid"])
        if not session:
            return False
        await self.delete(session)
        return True

    async def validate_session(self, token: str) -> User | None:
        """Resolve a token to its user if the session is still valid.

        Expired sessions are deleted when they are encountered.
        """
        claims = decode_session_token(token)
        payload = claims or get_token_data(token)
        if not payload or not payload.get("sid"):
            return None

        session = await self.get_by_id(payload["sid"])
        if not session:
            return None
        if session.is_expired():
            await self.delete(session)
            return None
        if claims is None or claims.get("sub") != session.user_id:
            return None

        user = await self.user_service.get_by_id(session.user_id)
        if not user or not user.is_active:
            return None
        return user

    async def cleanup_expired_sessions(self) -> int:
        """Delete all expired sessions. Returns the number removed."""
        result = await self.db.execute(
            delete(LoginSession).where(
                LoginSession.expires_at < datetime.now(timezone.utc)
            )
        )
        await self.commit()
        return result.rowcount or 0


def to_user_info(user: User) -> UserInfo:
    """Convert a user row to its public identity."""
    return UserInfo(id=user.id, username=user.username, display_name=user.display_name)
