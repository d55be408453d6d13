"""Account schemas: registration, sign-in, profile and admin status changes."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    username: str = Field(..., min_length=1, max_length=100)


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    """Public account fields. ``is_admin`` gates closes and broadcasts."""

    user_id: UUID
    email: str
    username: str
    status: str
    is_admin: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class UserProfileResponse(UserResponse):
    """The caller's own account with their auction activity.

    ``auctions_selling`` counts the caller's scheduled and active auctions;
    ``auctions_won`` counts ended auctions where the caller held the high bid.
    """

    auctions_selling: int = 0
    auctions_won: int = 0


class UserStatusUpdate(BaseModel):
    """Admin request to suspend or reinstate an account."""

    status: Literal["active", "suspended"]


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
