# models/user.py
from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional

Role = Literal["student", "admin"]
AccountStatus = Literal["active", "inactive", "suspended"]


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    role: Optional[Role] = None  # Separates the admin and student login forms


class UpdateMeRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    password: Optional[str] = Field(None, min_length=6, max_length=72)
    email: Optional[str] = None  # Only accepted so it can be rejected explicitly


PUBLIC_USER_FIELDS = (
    "id",
    "email",
    "name",
    "role",
    "accountStatus",
    "profileComplete",
    "avatar",
    "bio",
    "preferences",
    "lastLogin",
    "createdAt",
    "updatedAt",
)


def public_user(user: dict) -> dict:
    """Shape a user document for API responses. The password hash never leaves the server."""
    return {field: user.get(field) for field in PUBLIC_USER_FIELDS if field in user}
