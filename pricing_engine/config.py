"""Environment-driven settings."""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .errors import ValidationError
from .money import ZERO, parse_money

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "console")


def _money_env(environ: Mapping[str, str], name: str) -> Optional[Decimal]:
    raw = environ.get(name, "").strip()
    if not raw:
        return None
    try:
        value = parse_money(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{name} must be a decimal amount", e) from e
    if value < 0:
        raise ValidationError(f"{name} cannot be negative")
    return value


@dataclass(frozen=True)
class PricingSettings:
    log_level: str = "INFO"
    log_format: str = "json"
    service_fee_flat: Decimal = ZERO
    service_fee_percent: Decimal = ZERO
    service_fee_cap: Optional[Decimal] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PricingSettings":
        if environ is None:
            environ = os.environ

        log_level = environ.get("PRICING_LOG_LEVEL", "INFO").strip().upper()
        if log_level not in LOG_LEVELS:
            raise ValidationError(f"PRICING_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

        log_format = environ.get("PRICING_LOG_FORMAT", "json").strip().lower()
        if log_format not in LOG_FORMATS:
            raise ValidationError(f"PRICING_LOG_FORMAT must be one of {', '.join(LOG_FORMATS)}")

        return cls(
            log_level=log_level,
            log_format=log_format,
            service_fee_flat=_money_env(environ, "PRICING_SERVICE_FEE_FLAT") or ZERO,
            service_fee_percent=_money_env(environ, "PRICING_SERVICE_FEE_PERCENT") or ZERO,
            service_fee_cap=_money_env(environ, "PRICING_SERVICE_FEE_CAP"),
        )
