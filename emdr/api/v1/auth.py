"""Authentication API endpoints."""

from fastapi import APIRouter, HTTPException, Response, status

from emdr.core.config import get_settings
from emdr.core.deps import CurrentUserRequired, DBSession, SessionToken
from emdr.schemas.auth import AuthResponse, UserLogin, UserRegister
from emdr.services.auth_service import AuthService, to_user_info

router = APIRouter()
settings = get_settings()


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    response: Response,
    db: DBSession,
) -> AuthResponse:
    """
    Login and open a session.

    - **username**: Username
    - **password**: Password

    The session token is set as an http-only cookie and also returned.
    """
    auth_service = AuthService(db)
    result = await auth_service.login(credentials.username, credentials.password)

    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Ungültige Anmeldedaten",
        )

    response.set_cookie(
        key=settings.session_cookie_name,
        value=result.token,
        max_age=settings.session_expire_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )
    return AuthResponse(user=result.user, token=result.token)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(data: UserRegister, db: DBSession) -> AuthResponse:
    """Create a therapist account."""
    user = await AuthService(db).register(data.username, data.password, data.display_name)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Benutzername bereits vergeben",
        )
    return AuthResponse(user=user)


@router.post("/logout")
async def logout(response: Response, db: DBSession, token: SessionToken) -> dict:
    """Close the current session and clear the cookie."""
    if token:
        await AuthService(db).logout(token)
    response.delete_cookie(settings.session_cookie_name, path="/")
    return {"status": "success"}


@router.get("/me", response_model=AuthResponse)
async def me(current_user: CurrentUserRequired) -> AuthResponse:
    """Get the signed-in therapist."""
    return AuthResponse(user=to_user_info(current_user))
