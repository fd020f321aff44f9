"""FastAPI dependencies for dependency injection."""

from pathlib import Path
from typing import Annotated, AsyncGenerator

from fastapi import Cookie, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from emdr.core.config import get_settings
from emdr.db.session import async_session_maker
from emdr.models.user import User
from emdr.services.auth_service import AuthService
from emdr.services.local_store import FileKeyValueStore, LocalProtocolService
from emdr.services.protocol_service import ProtocolService
from emdr.services.protocol_store import IProtocolStore

settings = get_settings()

# Security scheme
security = HTTPBearer(auto_error=False)

# One local store per user so its index lock is shared between requests
_local_stores: dict[str, LocalProtocolService] = {}


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session."""
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_session_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    session: Annotated[str | None, Cookie(alias=settings.session_cookie_name)] = None,
) -> str | None:
    """Session token from the cookie, or from a Bearer header."""
    if session:
        return session
    if credentials:
        return credentials.credentials
    return None


async def get_current_user(
    token: Annotated[str | None, Depends(get_session_token)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User | None:
    """Get current authenticated user from the session token."""
    if not token:
        return None
    return await AuthService(db).validate_session(token)


async def get_current_user_required(
    user: Annotated[User | None, Depends(get_current_user)],
) -> User:
    """Require authenticated user, raise 401 if not authenticated."""
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_protocol_store(
    db: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user_required)],
) -> IProtocolStore:
    """Protocol store of the current user for the configured backend."""
    if settings.storage_backend == "local":
        if user.id not in _local_stores:
            folder = Path(settings.local_store_folder) / user.id
            _local_stores[user.id] = LocalProtocolService(FileKeyValueStore(folder))
        return _local_stores[user.id]
    return ProtocolService(db, user.id)


# Type aliases for cleaner dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
SessionToken = Annotated[str | None, Depends(get_session_token)]
CurrentUser = Annotated[User | None, Depends(get_current_user)]
CurrentUserRequired = Annotated[User, Depends(get_current_user_required)]
ProtocolStore = Annotated[IProtocolStore, Depends(get_protocol_store)]
