"""Validation helpers for pricing precondition checks."""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from .errors import ValidationError, errmsg


def require_not_empty(items: Sequence[Any], error_msg: str) -> None:
    """Require that a sequence has at least one element."""
    if not items:
        raise ValidationError(error_msg)


def require_positive_int(value: Any, error_msg: str) -> None:
    """Require an int (not a bool) greater than zero."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(error_msg)


def require_money(value: Any, error_msg: str = errmsg.PRICE_NEGATIVE) -> None:
    """Require a finite, non-negative Decimal."""
    if not isinstance(value, Decimal) or not value.is_finite():
        raise ValidationError(errmsg.PRICE_NOT_DECIMAL)
    if value < 0:
        raise ValidationError(error_msg)


def require_text(value: Any, error_msg: str) -> None:
    """Require a string that is not blank."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(error_msg)
