"""JSON wire shapes for the charge and order routes.

Keys are snake_case. Money travels as decimal strings with two places;
floats are rejected on the way in. Timestamps are RFC 3339.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from google.protobuf.timestamp_pb2 import Timestamp

from .errors import ValidationError, errmsg
from .lookups import AreaFeeSchedule, PromoStore, normalize_area
from .models import (
    ChargeBreakdown,
    ChargeRequest,
    ItemBreakdown,
    LineItem,
    OrderSnapshot,
    PickupSnapshot,
    PromoApplyOn,
    PromoRecord,
    PromoResult,
    PromoType,
    as_utc,
)
from .money import HUNDRED, ZERO, format_money, parse_money


# Decoding


def _require_mapping(payload: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: {what} must be an object")
    return payload


def _money(payload: Mapping[str, Any], key: str, default: Optional[Decimal] = ZERO) -> Optional[Decimal]:
    raw = payload.get(key)
    if raw is None or raw == "":
        if default is None:
            return None
        return default
    try:
        return parse_money(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{errmsg.PRICE_NOT_DECIMAL}: {key}", e) from e


def _required_money(payload: Mapping[str, Any], key: str) -> Decimal:
    value = _money(payload, key, default=None)
    if value is None:
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: {key} is required")
    return value


def _int(payload: Mapping[str, Any], key: str, default: Optional[int] = None) -> Optional[int]:
    raw = payload.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: {key} must be an integer")
    return raw


def _bool(payload: Mapping[str, Any], key: str, default: bool) -> bool:
    raw = payload.get(key)
    if raw is None:
        return default
    if not isinstance(raw, bool):
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: {key} must be a boolean")
    return raw


def _str_list(payload: Mapping[str, Any], key: str) -> frozenset:
    raw = payload.get(key)
    if raw is None:
        return frozenset()
    if not isinstance(raw, list) or not all(isinstance(v, str) and v for v in raw):
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: {key} must be a list of strings")
    return frozenset(raw)


def _str(payload: Mapping[str, Any], key: str, required: bool = False) -> Optional[str]:
    raw = payload.get(key)
    if raw is None or raw == "":
        if required:
            raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: {key} is required")
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: {key} must be a string")
    return raw


def parse_timestamp(rfc3339: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    try:
        ts = Timestamp()
        ts.FromJsonString(rfc3339)
    except ValueError as e:
        raise ValidationError(f"invalid timestamp: {rfc3339!r}", e) from e
    return ts.ToDatetime(tzinfo=timezone.utc)


def format_timestamp(value: datetime) -> str:
    ts = Timestamp()
    ts.FromDatetime(as_utc(value).astimezone(timezone.utc))
    return ts.ToJsonString()


def line_item_from_wire(payload: Any) -> LineItem:
    payload = _require_mapping(payload, "item")
    quantity = payload.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(errmsg.QUANTITY_POSITIVE)
    return LineItem(
        product_id=_str(payload, "product_id", required=True),
        restaurant_id=_str(payload, "restaurant_id", required=True),
        category_id=_str(payload, "category_id"),
        quantity=quantity,
        unit_price=_required_money(payload, "unit_price"),
        modifier_price=_money(payload, "modifier_price"),
        item_discount=_money(payload, "item_discount"),
        item_vat=_money(payload, "item_vat"),
        product_name=_str(payload, "product_name") or "",
    )


def charge_request_from_wire(payload: Any) -> ChargeRequest:
    """Decode a ``POST /orders/charges/calculate`` body."""
    payload = _require_mapping(payload, "request")
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError(errmsg.ITEMS_REQUIRED)
    area = _str(payload, "delivery_area")
    if area is None:
        raise ValidationError(errmsg.AREA_REQUIRED)
    return ChargeRequest(
        items=tuple(line_item_from_wire(item) for item in items),
        delivery_area=area,
        promo_code=_str(payload, "promo_code"),
    )


def promo_record_from_wire(payload: Any) -> PromoRecord:
    payload = _require_mapping(payload, "promo")
    try:
        promo_type = PromoType(payload.get("type"))
        apply_on = PromoApplyOn(payload.get("apply_on", PromoApplyOn.ORDER.value))
    except ValueError as e:
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: unknown promo type or target", e) from e

    amount = _required_money(payload, "amount")
    if amount < 0:
        raise ValidationError(errmsg.PROMO_AMOUNT_NEGATIVE)
    if promo_type == PromoType.PERCENTAGE and amount > HUNDRED:
        raise ValidationError(errmsg.PERCENTAGE_RANGE)

    starts_at = _str(payload, "starts_at", required=True)
    ends_at = _str(payload, "ends_at")
    return PromoRecord(
        code=_str(payload, "code", required=True),
        type=promo_type,
        amount=amount,
        apply_on=apply_on,
        starts_at=parse_timestamp(starts_at),
        ends_at=parse_timestamp(ends_at) if ends_at else None,
        cap=_money(payload, "cap", default=None),
        min_order_amount=_money(payload, "min_order_amount", default=None),
        max_usage=_int(payload, "max_usage"),
        usage_count=_int(payload, "usage_count", default=0),
        per_user_limit=_int(payload, "per_user_limit"),
        promo_id=_str(payload, "promo_id"),
        is_active=_bool(payload, "is_active", True),
        restaurant_ids=_str_list(payload, "restaurant_ids"),
        category_ids=_str_list(payload, "category_ids"),
    )


def promo_store_from_wire(payload: Any) -> PromoStore:
    if not isinstance(payload, list):
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: promos must be a list")
    return PromoStore(promo_record_from_wire(p) for p in payload)


def areas_from_wire(payload: Any) -> AreaFeeSchedule:
    """Build a fee schedule from a ``GET /areas`` listing.

    Each entry carries ``id``, ``name``, ``slug`` and ``delivery_charge``.
    """
    if isinstance(payload, Mapping):
        payload = payload.get("areas", payload.get("data"))
    if not isinstance(payload, list):
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: areas must be a list")
    fees = {}
    for area in payload:
        area = _require_mapping(area, "area")
        slug = _str(area, "slug", required=True)
        if normalize_area(slug) in fees:
            raise ValidationError(f"{errmsg.DUPLICATE_AREA}: {slug}")
        fees[normalize_area(slug)] = _money(area, "delivery_charge", default=None)
    if any(fee is None for fee in fees.values()):
        raise ValidationError(f"{errmsg.INVALID_REQUEST_BODY}: delivery_charge is required")
    return AreaFeeSchedule(fees)


# Encoding


def promo_result_to_wire(result: PromoResult) -> dict:
    wire = {
        "valid": result.valid,
        "discount_amount": format_money(result.discount_amount),
        "cashback_amount": format_money(result.cashback_amount),
    }
    if result.code is not None:
        wire["code"] = result.code
    if result.promo_id is not None:
        wire["promo_id"] = result.promo_id
    if result.promo_type is not None:
        wire["promo_type"] = result.promo_type.value
    if result.error_message is not None:
        wire["error_message"] = result.error_message
    return wire


def item_breakdown_to_wire(item: ItemBreakdown) -> dict:
    return {
        "product_id": item.product_id,
        "restaurant_id": item.restaurant_id,
        "category_id": item.category_id,
        "quantity": item.quantity,
        "unit_price": format_money(item.unit_price),
        "modifier_price": format_money(item.modifier_price),
        "item_subtotal": format_money(item.item_subtotal),
        "item_discount": format_money(item.item_discount),
        "item_vat": format_money(item.item_vat),
        "item_total": format_money(item.item_total),
    }


def breakdown_to_wire(breakdown: ChargeBreakdown) -> dict:
    """Encode the ``POST /orders/charges/calculate`` response."""
    return {
        "subtotal": format_money(breakdown.subtotal),
        "item_discount_total": format_money(breakdown.item_discount_total),
        "promo_discount_total": format_money(breakdown.promo_discount_total),
        "vat_total": format_money(breakdown.vat_total),
        "delivery_charge": format_money(breakdown.delivery_charge),
        "service_fee": format_money(breakdown.service_fee),
        "total_amount": format_money(breakdown.total_amount),
        "delivery_area": breakdown.delivery_area,
        "promo_result": promo_result_to_wire(breakdown.promo_result),
        "items": [item_breakdown_to_wire(i) for i in breakdown.items],
    }


def line_item_to_wire(item: LineItem) -> dict:
    return {
        "product_id": item.product_id,
        "restaurant_id": item.restaurant_id,
        "category_id": item.category_id,
        "product_name": item.product_name,
        "quantity": item.quantity,
        "unit_price": format_money(item.unit_price),
        "modifier_price": format_money(item.modifier_price),
        "item_discount": format_money(item.item_discount),
        "item_vat": format_money(item.item_vat),
    }


def pickup_to_wire(pickup: PickupSnapshot) -> dict:
    return {
        "restaurant_id": pickup.restaurant_id,
        "pickup_number": pickup.pickup_number,
        "items_subtotal": format_money(pickup.items_subtotal),
        "items_discount": format_money(pickup.items_discount),
        "items_vat": format_money(pickup.items_vat),
        "items_total": format_money(pickup.items_total),
    }


def snapshot_to_wire(snapshot: OrderSnapshot) -> dict:
    """Encode a snapshot for the order-storage collaborator (``POST /orders``)."""
    return {
        "snapshot_id": snapshot.snapshot_id,
        "frozen_at": format_timestamp(snapshot.frozen_at),
        "delivery_area": snapshot.delivery_area,
        "promo_code": snapshot.promo_code,
        "items": [line_item_to_wire(i) for i in snapshot.items],
        "charges": breakdown_to_wire(snapshot.breakdown),
        "pickups": [pickup_to_wire(p) for p in snapshot.pickups],
        "checksum": snapshot.checksum,
    }
