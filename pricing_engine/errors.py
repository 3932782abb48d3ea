"""Error types for the pricing engine.

Structural failures (bad input, unknown area, collaborator outage) are raised.
An unusable promo code is not an error: it is reported in ``PromoResult``.
"""

from typing import Optional


class errmsg:
    """Error message constants for the pricing domain."""

    ITEMS_REQUIRED = "At least one item is required"
    QUANTITY_POSITIVE = "Item quantity must be a positive integer"
    PRICE_NEGATIVE = "Price fields cannot be negative"
    PRICE_NOT_DECIMAL = "Price fields must be decimal amounts"
    DISCOUNT_EXCEEDS_PRICE = "Item discount cannot exceed unit price plus modifiers"
    AREA_REQUIRED = "Delivery area is required"
    DELIVERY_FEE_NEGATIVE = "Delivery charge cannot be negative"
    SERVICE_FEE_NEGATIVE = "Service fee cannot be negative"
    BREAKDOWN_MISMATCH = "Charge breakdown does not match the request"
    INVALID_REQUEST_BODY = "Invalid request body"
    PERCENTAGE_RANGE = "Percentage must be between 0 and 100"
    PROMO_AMOUNT_NEGATIVE = "Promo amount cannot be negative"
    DUPLICATE_AREA = "Duplicate delivery area"

    # Promo rejections; carried in PromoResult.error_message, never raised.
    PROMO_NOT_FOUND = "Invalid promo code"
    PROMO_NOT_YET_ACTIVE = "Promo not yet active"
    PROMO_EXPIRED = "Promo expired"
    PROMO_USAGE_LIMIT = "Promo usage limit reached"
    PROMO_USER_LIMIT = "Per-user usage limit reached"
    PROMO_MIN_ORDER = "Minimum order amount not met"
    PROMO_USER_NOT_ELIGIBLE = "You are not eligible for this promo"
    PROMO_RESTAURANT_RESTRICTED = "Promo is not valid for all restaurants in your cart"
    PROMO_CATEGORY_RESTRICTED = "Promo is not valid for all categories in your cart"
    PROMO_NO_TARGET = "Promo does not apply to any item in the cart"


class PricingError(Exception):
    """Base class for pricing errors."""

    code = "PRICING_ERROR"

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message


class ValidationError(PricingError):
    """Malformed input; the caller must fix it."""

    code = "VALIDATION_ERROR"


class UnknownAreaError(PricingError):
    """Delivery area is not in the fee schedule."""

    code = "UNKNOWN_AREA"

    def __init__(self, area: str):
        super().__init__(f"unknown delivery area: {area}")
        self.area = area


class LookupFailedError(PricingError):
    """A collaborator could not be reached; the calculation may be retried."""

    code = "LOOKUP_FAILED"
    retryable = True

    def __init__(self, collaborator: str, cause: Exception, status: Optional[str] = None):
        super().__init__(f"{collaborator} lookup failed", cause)
        self.collaborator = collaborator
        self.status = status
