"""Value types passed into and out of the pricing engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from .money import ZERO


def as_utc(value: datetime) -> datetime:
    """Read a naive datetime as UTC; aware values pass through unchanged."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PromoType(str, Enum):
    PERCENTAGE = "percentage"
    FLAT = "flat"
    CASHBACK = "cashback"


class PromoApplyOn(str, Enum):
    ORDER = "order"
    DELIVERY = "delivery"
    PRODUCT = "product"


@dataclass(frozen=True)
class LineItem:
    """One cart entry. Discount and VAT are per unit."""

    product_id: str
    restaurant_id: str
    quantity: int
    unit_price: Decimal
    modifier_price: Decimal = ZERO
    item_discount: Decimal = ZERO
    item_vat: Decimal = ZERO
    category_id: Optional[str] = None
    product_name: str = ""


@dataclass(frozen=True)
class ChargeRequest:
    items: Tuple[LineItem, ...]
    delivery_area: str
    promo_code: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class PromoRecord:
    """Promo as stored by the promo collaborator. Read-only here."""

    code: str
    type: PromoType
    amount: Decimal
    starts_at: datetime
    apply_on: PromoApplyOn = PromoApplyOn.ORDER
    ends_at: Optional[datetime] = None
    cap: Optional[Decimal] = None
    min_order_amount: Optional[Decimal] = None
    max_usage: Optional[int] = None
    usage_count: int = 0
    per_user_limit: Optional[int] = None
    promo_id: Optional[str] = None
    is_active: bool = True
    # Empty means unrestricted. Every cart line must match when set.
    restaurant_ids: FrozenSet[str] = frozenset()
    category_ids: FrozenSet[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "starts_at", as_utc(self.starts_at))
        if self.ends_at is not None:
            object.__setattr__(self, "ends_at", as_utc(self.ends_at))
        for name in ("restaurant_ids", "category_ids"):
            value = getattr(self, name)
            if not isinstance(value, frozenset):
                object.__setattr__(self, name, frozenset(value or ()))


@dataclass(frozen=True)
class PromoResult:
    valid: bool = False
    discount_amount: Decimal = ZERO
    error_message: Optional[str] = None
    code: Optional[str] = None
    promo_id: Optional[str] = None
    promo_type: Optional[PromoType] = None
    # Advisory: for the caller to post to a wallet. Never applied here.
    cashback_amount: Decimal = ZERO


@dataclass(frozen=True)
class ItemBreakdown:
    product_id: str
    restaurant_id: str
    quantity: int
    unit_price: Decimal
    modifier_price: Decimal
    item_subtotal: Decimal
    item_discount: Decimal
    item_vat: Decimal
    item_total: Decimal
    category_id: Optional[str] = None


@dataclass(frozen=True)
class ChargeBreakdown:
    subtotal: Decimal
    item_discount_total: Decimal
    promo_discount_total: Decimal
    vat_total: Decimal
    delivery_charge: Decimal
    service_fee: Decimal
    total_amount: Decimal
    promo_result: PromoResult
    delivery_area: str
    items: Tuple[ItemBreakdown, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PickupSnapshot:
    """Items from one restaurant, picked up together by the rider."""

    restaurant_id: str
    pickup_number: int
    items_subtotal: Decimal
    items_discount: Decimal
    items_vat: Decimal
    items_total: Decimal


@dataclass(frozen=True)
class OrderSnapshot:
    snapshot_id: str
    frozen_at: datetime
    items: Tuple[LineItem, ...]
    breakdown: ChargeBreakdown
    pickups: Tuple[PickupSnapshot, ...]
    delivery_area: str
    promo_code: Optional[str]
    checksum: str
