"""HTTP tests for the bidding endpoints with service dependencies overridden."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from auction_engine.api.deps import get_current_user, get_lifecycle_manager, get_user_service
from auction_engine.core.exceptions import UserNotFound
from auction_engine.main import app
from auction_engine.models.auction import AuctionStatus
from auction_engine.models.user import UserStatus
from auction_engine.services.user_service import AuctionActivity


def open_auction(repo, **kwargs):
    """An auction that is open against the real clock the endpoints use."""
    now = datetime.now(timezone.utc)
    return repo.add_auction(
        start_time=now - timedelta(minutes=5),
        end_time=now + timedelta(hours=1),
        **kwargs,
    )


@pytest.fixture
def user_service():
    service = MagicMock()
    service.get_activity = AsyncMock(return_value=AuctionActivity(selling=1, won=3))
    service.set_status = AsyncMock()
    return service


@pytest_asyncio.fixture
async def client(lifecycle, mock_user, user_service):
    app.dependency_overrides[get_lifecycle_manager] = lambda: lifecycle
    app.dependency_overrides[get_current_user] = lambda: mock_user
    app.dependency_overrides[get_user_service] = lambda: user_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.mark.asyncio
class TestPlaceBidEndpoint:
    """Test POST /api/v1/bids."""

    async def test_place_bid(self, client, repo, mock_user):
        """An accepted bid returns 201 with the new high bid."""
        auction = open_auction(repo)

        response = await client.post(
            "/api/v1/bids",
            json={"auction_id": str(auction.auction_id), "amount": "1200"},
        )

        assert response.status_code == 201
        body = response.json()
        assert Decimal(str(body["current_bid"])) == Decimal("1200")
        assert body["highest_bidder_id"] == str(mock_user.user_id)
        assert body["outbid_user_id"] is None

    async def test_bid_too_low(self, client, repo):
        """Rejections carry a typed code."""
        auction = open_auction(repo)

        response = await client.post(
            "/api/v1/bids",
            json={"auction_id": str(auction.auction_id), "amount": "1000"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "BID_TOO_LOW"

    async def test_bid_on_ended_auction(self, client, repo):
        auction = open_auction(repo, status=AuctionStatus.ENDED.value)

        response = await client.post(
            "/api/v1/bids",
            json={"auction_id": str(auction.auction_id), "amount": "5000"},
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "AUCTION_CLOSED"

    async def test_seller_bid_forbidden(self, client, repo, mock_user):
        auction = open_auction(repo, seller_id=mock_user.user_id)

        response = await client.post(
            "/api/v1/bids",
            json={"auction_id": str(auction.auction_id), "amount": "5000"},
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "SELF_BID_NOT_ALLOWED"

    async def test_unknown_auction(self, client):
        response = await client.post(
            "/api/v1/bids",
            json={"auction_id": str(uuid4()), "amount": "5000"},
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "AUCTION_NOT_FOUND"

    async def test_sub_cent_bid_rejected(self, client, repo):
        """An amount with more than two decimal places is refused, not rounded."""
        auction = open_auction(repo)

        response = await client.post(
            "/api/v1/bids",
            json={"auction_id": str(auction.auction_id), "amount": "1000.001"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_AMOUNT"
        assert auction.current_bid is None


@pytest.mark.asyncio
class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
class TestAccounts:
    """Test the profile and admin status endpoints."""

    async def test_me_reports_role_and_activity(self, client, mock_user):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == str(mock_user.user_id)
        assert body["is_admin"] is False
        assert body["status"] == UserStatus.ACTIVE.value
        assert body["auctions_selling"] == 1
        assert body["auctions_won"] == 3

    async def test_suspend_requires_admin(self, client, user_service):
        response = await client.patch(
            f"/api/v1/users/{uuid4()}/status", json={"status": "suspended"}
        )

        assert response.status_code == 403
        user_service.set_status.assert_not_awaited()

    async def test_admin_suspends_user(self, client, user_service, mock_user):
        mock_user.is_admin = True
        target = SimpleNamespace(
            user_id=uuid4(),
            email="bidder@example.com",
            username="bidder",
            status=UserStatus.SUSPENDED.value,
            is_admin=False,
            created_at=datetime.now(timezone.utc),
        )
        user_service.set_status.return_value = target

        response = await client.patch(
            f"/api/v1/users/{target.user_id}/status", json={"status": "suspended"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == UserStatus.SUSPENDED.value
        user_service.set_status.assert_awaited_once_with(
            target.user_id, UserStatus.SUSPENDED, mock_user.user_id
        )

    async def test_unknown_status_rejected(self, client, mock_user):
        mock_user.is_admin = True

        response = await client.patch(f"/api/v1/users/{uuid4()}/status", json={"status": "banned"})

        assert response.status_code == 422

    async def test_unknown_user(self, client, user_service, mock_user):
        mock_user.is_admin = True
        missing = uuid4()
        user_service.set_status.side_effect = UserNotFound(missing)

        response = await client.patch(f"/api/v1/users/{missing}/status", json={"status": "active"})

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "USER_NOT_FOUND"
