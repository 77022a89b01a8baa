# marketplace/core/errors.py
"""
Typed errors raised by the pricing, order and payment layers.

Each error carries a stable ``code`` and the HTTP status the API layer should
answer with. Endpoints translate them with ``raise_http``.
"""
from fastapi import HTTPException, status


class MarketplaceError(Exception):
    """Base class for all domain errors."""

    code = "MARKETPLACE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


# --- Validation ---

class InvalidQuantity(MarketplaceError):
    code = "INVALID_QUANTITY"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class QuantityBelowMinimum(MarketplaceError):
    code = "QUANTITY_BELOW_MINIMUM"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, minimum: int):
        self.minimum = minimum
        super().__init__(f"Minimum order quantity is {minimum}")


class OfferNotFound(MarketplaceError):
    code = "OFFER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class OfferInactive(OfferNotFound):
    code = "OFFER_INACTIVE"


# --- Lookup / state ---

class OrderNotFound(MarketplaceError):
    code = "ORDER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class OrderNotPending(MarketplaceError):
    code = "ORDER_NOT_PENDING"
    status_code = status.HTTP_409_CONFLICT


class OrderAlreadyPaid(MarketplaceError):
    code = "ORDER_ALREADY_PAID"
    status_code = status.HTTP_409_CONFLICT


class PaymentNotFound(MarketplaceError):
    code = "PAYMENT_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ApplicationNotFound(MarketplaceError):
    code = "APPLICATION_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ApplicationAlreadyReviewed(MarketplaceError):
    code = "APPLICATION_ALREADY_REVIEWED"
    status_code = status.HTTP_409_CONFLICT


# --- Authorization ---

class Forbidden(MarketplaceError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


# --- External dependencies ---

class PaymentGatewayError(MarketplaceError):
    """The gateway could not open a checkout session. The buyer may retry."""

    code = "PAYMENT_GATEWAY_ERROR"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str = "", retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class UserDirectoryUnavailable(MarketplaceError):
    """The user service could not answer a role lookup. The caller may retry."""

    code = "USER_DIRECTORY_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class InvalidSignature(MarketplaceError):
    code = "INVALID_SIGNATURE"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidPayload(MarketplaceError):
    code = "INVALID_PAYLOAD"
    status_code = status.HTTP_400_BAD_REQUEST


# --- Bugs ---

class OrderInvariantViolation(MarketplaceError):
    code = "ORDER_INVARIANT_VIOLATION"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def raise_http(exc: MarketplaceError) -> None:
    """Re-raise a domain error as the matching HTTPException."""
    detail = {"code": exc.code, "message": exc.message}
    if isinstance(exc, (PaymentGatewayError, UserDirectoryUnavailable)):
        detail["retryable"] = exc.retryable
    raise HTTPException(status_code=exc.status_code, detail=detail) from exc
