"""Tests for account registration, sign-in, activity and suspension."""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from auction_engine.core.exceptions import (
    EmailTaken,
    InvalidCredentials,
    NotAuthorized,
    UserNotFound,
)
from auction_engine.core.security import get_password_hash
from auction_engine.models.user import User, UserStatus
from auction_engine.schemas.user import UserRegister
from auction_engine.services.user_service import UserService, cache_fields


def found(user):
    res = MagicMock()
    res.scalar_one_or_none.return_value = user
    return res


def counted(n):
    res = MagicMock()
    res.scalar_one.return_value = n
    return res


def make_user(now, **overrides):
    values = dict(
        user_id=uuid4(),
        email="seller@example.com",
        username="seller",
        password_hash=get_password_hash("correct-horse"),
        status=UserStatus.ACTIVE.value,
        is_admin=False,
        created_at=now,
    )
    values.update(overrides)
    return User(**values)


@pytest.fixture
def redis_service():
    service = MagicMock()
    service.invalidate_user_cache = AsyncMock(return_value=True)
    return service


@pytest.mark.asyncio
class TestRegistration:
    """Test account creation."""

    async def test_creates_active_non_admin(self, mock_db):
        mock_db.execute.return_value = found(None)
        service = UserService(mock_db)

        user = await service.create_user(
            UserRegister(email="new@example.com", password="long-enough", username="new")
        )

        assert user.status == UserStatus.ACTIVE.value
        assert user.is_admin is False
        assert user.password_hash != "long-enough"
        mock_db.add.assert_called_once_with(user)
        mock_db.commit.assert_awaited_once()

    async def test_email_taken(self, mock_db, now):
        mock_db.execute.return_value = found(make_user(now))
        service = UserService(mock_db)

        with pytest.raises(EmailTaken) as excinfo:
            await service.create_user(
                UserRegister(email="seller@example.com", password="long-enough", username="x")
            )

        assert excinfo.value.code == "EMAIL_TAKEN"
        mock_db.add.assert_not_called()

    async def test_concurrent_registration_loses_unique_index(self, mock_db):
        """The losing insert of two simultaneous registrations maps to EmailTaken."""
        mock_db.execute.return_value = found(None)
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate"))
        service = UserService(mock_db)

        with pytest.raises(EmailTaken):
            await service.create_user(
                UserRegister(email="race@example.com", password="long-enough", username="r")
            )

        mock_db.rollback.assert_awaited_once()


@pytest.mark.asyncio
class TestAuthenticate:
    """Test sign-in checks."""

    async def test_valid_credentials(self, mock_db, now):
        user = make_user(now)
        mock_db.execute.return_value = found(user)

        assert await UserService(mock_db).authenticate(user.email, "correct-horse") is user

    @pytest.mark.parametrize("password", ["wrong-password", ""])
    async def test_wrong_password(self, mock_db, now, password):
        mock_db.execute.return_value = found(make_user(now))

        with pytest.raises(InvalidCredentials):
            await UserService(mock_db).authenticate("seller@example.com", password)

    async def test_unknown_email(self, mock_db):
        mock_db.execute.return_value = found(None)

        with pytest.raises(InvalidCredentials):
            await UserService(mock_db).authenticate("nobody@example.com", "correct-horse")

    async def test_suspended_account_refused(self, mock_db, now):
        mock_db.execute.return_value = found(make_user(now, status=UserStatus.SUSPENDED.value))

        with pytest.raises(InvalidCredentials):
            await UserService(mock_db).authenticate("seller@example.com", "correct-horse")


@pytest.mark.asyncio
class TestActivity:
    async def test_counts_selling_and_won(self, mock_db):
        mock_db.execute.side_effect = [counted(2), counted(5)]

        activity = await UserService(mock_db).get_activity(uuid4())

        assert (activity.selling, activity.won) == (2, 5)
        selling_sql = str(mock_db.execute.await_args_list[0].args[0])
        won_sql = str(mock_db.execute.await_args_list[1].args[0])
        assert "auctions.seller_id" in selling_sql
        assert "auctions.highest_bidder_id" in won_sql


@pytest.mark.asyncio
class TestSetStatus:
    """Test admin suspension and reinstatement."""

    async def test_suspend_invalidates_cache(self, mock_db, redis_service, now):
        user = make_user(now)
        mock_db.execute.return_value = found(user)
        service = UserService(mock_db, redis_service)

        updated = await service.set_status(user.user_id, UserStatus.SUSPENDED, actor_id=uuid4())

        assert updated.status == UserStatus.SUSPENDED.value
        mock_db.commit.assert_awaited_once()
        redis_service.invalidate_user_cache.assert_awaited_once_with(str(user.user_id))

    async def test_same_status_skips_write(self, mock_db, redis_service, now):
        user = make_user(now)
        mock_db.execute.return_value = found(user)
        service = UserService(mock_db, redis_service)

        await service.set_status(user.user_id, UserStatus.ACTIVE, actor_id=uuid4())

        mock_db.commit.assert_not_awaited()

    async def test_unknown_user(self, mock_db, redis_service):
        mock_db.execute.return_value = found(None)
        service = UserService(mock_db, redis_service)

        with pytest.raises(UserNotFound):
            await service.set_status(uuid4(), UserStatus.SUSPENDED, actor_id=uuid4())

        redis_service.invalidate_user_cache.assert_not_awaited()

    async def test_admin_cannot_suspend_self(self, mock_db, redis_service):
        admin_id = uuid4()
        service = UserService(mock_db, redis_service)

        with pytest.raises(NotAuthorized):
            await service.set_status(admin_id, UserStatus.SUSPENDED, actor_id=admin_id)

        mock_db.execute.assert_not_awaited()

    async def test_cache_failure_keeps_change(self, mock_db, redis_service, now):
        user = make_user(now)
        mock_db.execute.return_value = found(user)
        redis_service.invalidate_user_cache.side_effect = ConnectionError("redis down")

        updated = await UserService(mock_db, redis_service).set_status(
            user.user_id, UserStatus.SUSPENDED, actor_id=uuid4()
        )

        assert updated.status == UserStatus.SUSPENDED.value


class TestCacheFields:
    def test_password_hash_never_cached(self, now):
        fields = cache_fields(make_user(now, is_admin=True))

        assert "password_hash" not in fields
        assert fields["is_admin"] == "True"
        assert fields["status"] == UserStatus.ACTIVE.value
