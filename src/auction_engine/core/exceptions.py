"""Typed errors raised by the auction core.

Every error carries a stable ``code`` that the API layer renders as
``{"detail": {"code": ..., "message": ...}}`` and an HTTP status.
"""

import asyncio
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator
from uuid import UUID

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from sqlalchemy.exc import InterfaceError, OperationalError


class AuctionError(Exception):
    """Base class for auction errors."""

    code = "AUCTION_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str = "Auction operation failed"):
        self.message = message
        super().__init__(self.message)

    def to_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class AuctionNotFound(AuctionError):
    code = "AUCTION_NOT_FOUND"
    status_code = 404

    def __init__(self, auction_id: UUID):
        self.auction_id = auction_id
        super().__init__(f"Auction not found: {auction_id}")


class AuctionClosed(AuctionError):
    """The auction has ended; terminal for every bidder."""

    code = "AUCTION_CLOSED"
    status_code = 409

    def __init__(self, message: str = "Auction has ended"):
        super().__init__(message)


class AuctionNotActive(AuctionError):
    code = "AUCTION_NOT_ACTIVE"
    status_code = 409

    def __init__(self, message: str = "Auction has not started yet"):
        super().__init__(message)


class BidTooLow(AuctionError):
    """Correctable by resubmitting a higher amount."""

    code = "BID_TOO_LOW"
    status_code = 400

    def __init__(self, threshold: Decimal):
        self.threshold = threshold
        super().__init__(f"Bid must be greater than {threshold}")


class InvalidAmount(AuctionError):
    code = "INVALID_AMOUNT"
    status_code = 400

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(
            f"Bid amount must be a positive number with at most two decimal places "
            f"and at most 9999999999.99, got {amount!r}"
        )


class SelfBidNotAllowed(AuctionError):
    code = "SELF_BID_NOT_ALLOWED"
    status_code = 403

    def __init__(self):
        super().__init__("Sellers cannot bid on their own auction")


class InvalidTransition(AuctionError):
    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move auction from {current} to {target}")


class NotAuthorized(AuctionError):
    code = "NOT_AUTHORIZED"
    status_code = 403

    def __init__(self, message: str = "Not allowed to perform this action"):
        super().__init__(message)


class NotificationNotFound(AuctionError):
    code = "NOTIFICATION_NOT_FOUND"
    status_code = 404

    def __init__(self, notification_id: UUID):
        self.notification_id = notification_id
        super().__init__(f"Notification not found: {notification_id}")


class EmailTaken(AuctionError):
    code = "EMAIL_TAKEN"
    status_code = 400

    def __init__(self, email: str):
        self.email = email
        super().__init__("Email already registered")


class InvalidCredentials(AuctionError):
    """Wrong password, unknown email or a suspended account; not distinguished."""

    code = "INVALID_CREDENTIALS"
    status_code = 401

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class UserNotFound(AuctionError):
    code = "USER_NOT_FOUND"
    status_code = 404

    def __init__(self, user_id: UUID):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class TransientNetworkError(AuctionError):
    """Database or Redis unreachable. The caller may retry."""

    code = "TEMPORARILY_UNAVAILABLE"
    status_code = 503
    retryable = True

    def __init__(self, message: str = "Backend temporarily unavailable, please retry"):
        super().__init__(message)


# Failures worth a retry by the caller: connection loss, timeouts, lock waits
TRANSIENT_ERRORS = (
    OperationalError,
    InterfaceError,
    RedisConnectionError,
    RedisTimeoutError,
    ConnectionError,
    asyncio.TimeoutError,
)


@contextmanager
def translate_transient_errors() -> Iterator[None]:
    """Re-raise backend connectivity failures as TransientNetworkError."""
    try:
        yield
    except TRANSIENT_ERRORS as e:
        raise TransientNetworkError() from e
