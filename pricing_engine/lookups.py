"""Adapters for the collaborators the engine reads from.

The promo store and the area fee schedule are owned by the backend. The
engine sees them as plain callables returning a value or ``None``; this
module classifies their failures and provides in-memory implementations
built from backend payloads.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Callable, Optional, TypeVar

import grpc
import structlog

from .errors import LookupFailedError, ValidationError, errmsg
from .models import PromoRecord
from .promo import normalize_code

logger = structlog.get_logger()

T = TypeVar("T")

PromoLookup = Callable[[str], Optional[PromoRecord]]
AreaFeeLookup = Callable[[str], Optional[Decimal]]


def _status_of(err: grpc.RpcError) -> Optional[grpc.StatusCode]:
    code = getattr(err, "code", None)
    if callable(code):
        return code()
    return None


def guarded_lookup(collaborator: str, fn: Callable[[str], Optional[T]], key: str) -> Optional[T]:
    """Call a collaborator lookup, separating "not found" from "couldn't check".

    A gRPC NOT_FOUND is reported as ``None``. Transport failures become
    ``LookupFailedError``. Anything else is a bug in the caller and propagates.
    """
    try:
        return fn(key)
    except grpc.RpcError as e:
        status = _status_of(e)
        if status == grpc.StatusCode.NOT_FOUND:
            return None
        logger.warning("lookup_failed", collaborator=collaborator, key=key, status=str(status))
        raise LookupFailedError(collaborator, e, status=status.name if status else None) from e
    except (OSError, TimeoutError) as e:
        logger.warning("lookup_failed", collaborator=collaborator, key=key, error=str(e))
        raise LookupFailedError(collaborator, e) from e


def normalize_area(slug: str) -> str:
    return slug.strip().lower()


class AreaFeeSchedule:
    """Delivery fee per coverage area, keyed by slug."""

    def __init__(self, fees: Mapping[str, Decimal]):
        schedule = {}
        for slug, fee in fees.items():
            if not isinstance(fee, Decimal) or fee < 0:
                raise ValidationError(errmsg.DELIVERY_FEE_NEGATIVE)
            key = normalize_area(slug)
            if key in schedule:
                raise ValidationError(f"{errmsg.DUPLICATE_AREA}: {slug}")
            schedule[key] = fee
        self._fees = schedule

    def __call__(self, slug: str) -> Optional[Decimal]:
        return self._fees.get(normalize_area(slug))

    def __contains__(self, slug: str) -> bool:
        return normalize_area(slug) in self._fees

    def __len__(self) -> int:
        return len(self._fees)

    def slugs(self) -> list[str]:
        return sorted(self._fees)


class PromoStore:
    """Promo records keyed by normalized code."""

    def __init__(self, records: Iterable[PromoRecord]):
        self._records = {}
        for record in records:
            code = normalize_code(record.code)
            if code is None:
                raise ValidationError("Promo code is required")
            self._records[code] = record

    def __call__(self, code: str) -> Optional[PromoRecord]:
        normalized = normalize_code(code)
        if normalized is None:
            return None
        return self._records.get(normalized)

    def __len__(self) -> int:
        return len(self._records)
