"""Registration, sign-in and the caller's own profile."""

from fastapi import APIRouter, status

from auction_engine.api.deps import CurrentUser, UserServiceDep
from auction_engine.core.config import settings
from auction_engine.core.security import create_access_token
from auction_engine.schemas.user import (
    TokenResponse,
    UserLogin,
    UserProfileResponse,
    UserRegister,
    UserResponse,
)

router = APIRouter()


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserRegister, users: UserServiceDep):
    """Register an account. Every account can both sell and bid.

    Raises:
        400: EMAIL_TAKEN
    """
    return await users.create_user(user_data)


@router.post("/login", response_model=TokenResponse)
async def login(user_data: UserLogin, users: UserServiceDep):
    """Exchange credentials for a bearer token.

    Raises:
        401: INVALID_CREDENTIALS, also for suspended accounts
    """
    user = await users.authenticate(user_data.email, user_data.password)
    access_token = create_access_token(data={"sub": str(user.user_id), "email": user.email})
    return TokenResponse(
        access_token=access_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.get("/me", response_model=UserProfileResponse)
async def get_me(current_user: CurrentUser, users: UserServiceDep):
    """The caller's account, role and auction activity."""
    activity = await users.get_activity(current_user.user_id)
    base = UserResponse.model_validate(current_user)
    return UserProfileResponse(
        **base.model_dump(),
        auctions_selling=activity.selling,
        auctions_won=activity.won,
    )
