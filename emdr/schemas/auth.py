"""Authentication schemas."""

from pydantic import BaseModel, Field


class UserLogin(BaseModel):
    """Login request schema."""

    username: str = Field(..., min_length=3, max_length=50, description="Username")
    password: str = Field(..., min_length=8, max_length=100, description="Password")


class UserRegister(BaseModel):
    """Registration request schema."""

    username: str = Field(..., min_length=3, max_length=50, description="Username")
    password: str = Field(..., min_length=8, max_length=100, description="Password")
    display_name: str | None = Field(None, max_length=100, alias="displayName")

    model_config = {"populate_by_name": True}


class UserInfo(BaseModel):
    """Identity of the signed-in therapist."""

    id: str
    username: str
    display_name: str | None = Field(None, alias="displayName")

    model_config = {"populate_by_name": True, "from_attributes": True}


class AuthResponse(BaseModel):
    """Login/register/me response schema."""

    user: UserInfo
    token: str | None = Field(None, description="Session token, also set as cookie")
