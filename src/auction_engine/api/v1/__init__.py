"""API v1 routers."""

from auction_engine.api.v1 import auctions, auth, auto_bids, bids, notifications, users, ws

__all__ = ["auth", "auctions", "bids", "auto_bids", "notifications", "users", "ws"]
