"""Frozen order snapshots.

Once a customer confirms, the breakdown they saw is frozen together with
the items it priced. Payment and the persisted order both use this snapshot
verbatim; nothing is recomputed after confirmation.
"""

import hashlib
import json
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog

from .codec import snapshot_to_wire
from .engine import item_breakdown
from .errors import ValidationError, errmsg
from .models import ChargeBreakdown, ChargeRequest, OrderSnapshot, PickupSnapshot, as_utc
from .money import ZERO, quantize
from .promo import normalize_code

logger = structlog.get_logger()


def _check_matches(request: ChargeRequest, breakdown: ChargeBreakdown) -> None:
    if len(request.items) != len(breakdown.items):
        raise ValidationError(errmsg.BREAKDOWN_MISMATCH)
    for item, priced in zip(request.items, breakdown.items):
        if item_breakdown(item) != priced:
            raise ValidationError(errmsg.BREAKDOWN_MISMATCH)
    if request.delivery_area.strip() != breakdown.delivery_area:
        raise ValidationError(errmsg.BREAKDOWN_MISMATCH)
    result = breakdown.promo_result
    if result.valid and result.code != normalize_code(request.promo_code):
        raise ValidationError(errmsg.BREAKDOWN_MISMATCH)


def group_pickups(breakdown: ChargeBreakdown) -> tuple[PickupSnapshot, ...]:
    """One pickup per restaurant, numbered in order of first appearance."""
    totals: dict[str, list[Decimal]] = {}
    for priced in breakdown.items:
        acc = totals.setdefault(priced.restaurant_id, [ZERO, ZERO, ZERO])
        acc[0] += priced.item_subtotal
        acc[1] += priced.item_discount
        acc[2] += priced.item_vat

    pickups = []
    for number, (restaurant_id, (subtotal, discount, vat)) in enumerate(totals.items(), start=1):
        pickups.append(
            PickupSnapshot(
                restaurant_id=restaurant_id,
                pickup_number=number,
                items_subtotal=quantize(subtotal),
                items_discount=quantize(discount),
                items_vat=quantize(vat),
                items_total=quantize(subtotal - discount + vat),
            )
        )
    return tuple(pickups)


def snapshot_checksum(snapshot: OrderSnapshot) -> str:
    """SHA-256 over the canonical wire form, excluding the checksum itself."""
    payload = snapshot_to_wire(snapshot)
    del payload["checksum"]
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def create_order_snapshot(
    request: ChargeRequest,
    breakdown: ChargeBreakdown,
    *,
    snapshot_id: Optional[str] = None,
    frozen_at: Optional[datetime] = None,
) -> OrderSnapshot:
    """Freeze a computed breakdown with the items it priced.

    Raises:
        ValidationError: The breakdown was computed for a different request.
    """
    _check_matches(request, breakdown)

    snapshot = OrderSnapshot(
        snapshot_id=snapshot_id or str(uuid.uuid4()),
        frozen_at=as_utc(frozen_at) if frozen_at else datetime.now(timezone.utc),
        items=request.items,
        breakdown=breakdown,
        pickups=group_pickups(breakdown),
        delivery_area=breakdown.delivery_area,
        promo_code=breakdown.promo_result.code if breakdown.promo_result.valid else None,
        checksum="",
    )
    snapshot = replace(snapshot, checksum=snapshot_checksum(snapshot))

    logger.info(
        "order_snapshot_created",
        snapshot_id=snapshot.snapshot_id,
        pickups=len(snapshot.pickups),
        total=str(breakdown.total_amount),
    )
    return snapshot


def verify_snapshot(snapshot: OrderSnapshot) -> bool:
    """True if the snapshot is exactly what create_order_snapshot produced."""
    return snapshot.checksum == snapshot_checksum(snapshot)
