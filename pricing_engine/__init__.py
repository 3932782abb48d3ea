"""Order charge calculation and promo evaluation for the delivery platform."""

from .errors import (
    PricingError,
    ValidationError,
    UnknownAreaError,
    LookupFailedError,
    errmsg,
)
from .models import (
    LineItem,
    ChargeRequest,
    PromoRecord,
    PromoResult,
    PromoType,
    PromoApplyOn,
    ItemBreakdown,
    ChargeBreakdown,
    PickupSnapshot,
    OrderSnapshot,
)
from .promo import normalize_code, evaluate_promo, discount_base
from .lookups import AreaFeeSchedule, PromoStore, guarded_lookup
from .fees import (
    no_service_fee,
    flat_service_fee,
    percentage_service_fee,
    policy_from_settings,
)
from .engine import calculate_charges
from .snapshot import create_order_snapshot, verify_snapshot
from .codec import (
    charge_request_from_wire,
    promo_record_from_wire,
    areas_from_wire,
    breakdown_to_wire,
    snapshot_to_wire,
)
from .config import PricingSettings
from .logconfig import configure_logging

__all__ = [
    # Errors
    "PricingError",
    "ValidationError",
    "UnknownAreaError",
    "LookupFailedError",
    "errmsg",
    # Models
    "LineItem",
    "ChargeRequest",
    "PromoRecord",
    "PromoResult",
    "PromoType",
    "PromoApplyOn",
    "ItemBreakdown",
    "ChargeBreakdown",
    "PickupSnapshot",
    "OrderSnapshot",
    # Promo
    "normalize_code",
    "evaluate_promo",
    "discount_base",
    # Collaborators
    "AreaFeeSchedule",
    "PromoStore",
    "guarded_lookup",
    # Fees
    "no_service_fee",
    "flat_service_fee",
    "percentage_service_fee",
    "policy_from_settings",
    # Engine
    "calculate_charges",
    "create_order_snapshot",
    "verify_snapshot",
    # Wire
    "charge_request_from_wire",
    "promo_record_from_wire",
    "areas_from_wire",
    "breakdown_to_wire",
    "snapshot_to_wire",
    # Config
    "PricingSettings",
    "configure_logging",
]
