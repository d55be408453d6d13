"""Admin account management."""

from uuid import UUID

from fastapi import APIRouter

from auction_engine.api.deps import AdminUser, UserServiceDep
from auction_engine.models.user import UserStatus
from auction_engine.schemas.user import UserResponse, UserStatusUpdate

router = APIRouter()


@router.patch("/{user_id}/status", response_model=UserResponse)
async def set_user_status(
    user_id: UUID,
    update: UserStatusUpdate,
    admin: AdminUser,
    users: UserServiceDep,
):
    """Suspend or reinstate an account. Admin only.

    A suspended user's tokens stop resolving on their next request.

    Raises:
        403: Not an admin, or the admin's own account
        404: USER_NOT_FOUND
    """
    return await users.set_status(user_id, UserStatus(update.status), admin.user_id)
