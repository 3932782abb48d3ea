"""Order charge calculation.

``calculate_charges`` is the single place order money is computed. The cart
drawer, the product modal and the checkout page all price through it, and
the order that gets persisted carries the breakdown it returned.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

import structlog

from .errors import UnknownAreaError, ValidationError, errmsg
from .fees import ServiceFeePolicy
from .lookups import AreaFeeLookup, PromoLookup, guarded_lookup
from .models import ChargeBreakdown, ChargeRequest, ItemBreakdown, LineItem, PromoResult, as_utc
from .money import ZERO, quantize
from .promo import evaluate_promo, normalize_code
from .validation import require_money, require_not_empty, require_positive_int, require_text

logger = structlog.get_logger()


def validate_request(request: ChargeRequest) -> None:
    """Reject structurally invalid requests before any lookup happens."""
    require_not_empty(request.items, errmsg.ITEMS_REQUIRED)
    for item in request.items:
        validate_line_item(item)
    require_text(request.delivery_area, errmsg.AREA_REQUIRED)


def validate_line_item(item: LineItem) -> None:
    require_positive_int(item.quantity, errmsg.QUANTITY_POSITIVE)
    require_money(item.unit_price)
    require_money(item.modifier_price)
    require_money(item.item_discount)
    require_money(item.item_vat)
    if item.item_discount > item.unit_price + item.modifier_price:
        raise ValidationError(errmsg.DISCOUNT_EXCEEDS_PRICE)


def price_line(item: LineItem) -> tuple[Decimal, Decimal, Decimal]:
    """Full-precision subtotal, discount and VAT for one line."""
    subtotal = (item.unit_price + item.modifier_price) * item.quantity
    return subtotal, item.item_discount * item.quantity, item.item_vat * item.quantity


def item_breakdown(item: LineItem) -> ItemBreakdown:
    """Published, quantized figures for one line."""
    subtotal, discount, vat = price_line(item)
    return ItemBreakdown(
        product_id=item.product_id,
        restaurant_id=item.restaurant_id,
        category_id=item.category_id,
        quantity=item.quantity,
        unit_price=quantize(item.unit_price),
        modifier_price=quantize(item.modifier_price),
        item_subtotal=quantize(subtotal),
        item_discount=quantize(discount),
        item_vat=quantize(vat),
        item_total=quantize(subtotal - discount + vat),
    )


def _resolve_delivery_charge(area: str, area_fee_lookup: AreaFeeLookup) -> Decimal:
    fee = guarded_lookup("area_fee", area_fee_lookup, area)
    if fee is None:
        raise UnknownAreaError(area)
    require_money(fee, errmsg.DELIVERY_FEE_NEGATIVE)
    return fee


def _published(result: PromoResult) -> PromoResult:
    return PromoResult(
        valid=result.valid,
        discount_amount=quantize(result.discount_amount),
        error_message=result.error_message,
        code=result.code,
        promo_id=result.promo_id,
        promo_type=result.promo_type,
        cashback_amount=quantize(result.cashback_amount),
    )


def calculate_charges(
    request: ChargeRequest,
    promo_lookup: PromoLookup,
    area_fee_lookup: AreaFeeLookup,
    service_fee_policy: ServiceFeePolicy,
    *,
    product_base: Optional[Decimal] = None,
    user_usage_count: Optional[int] = None,
    user_eligible: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> ChargeBreakdown:
    """Price a cart.

    Args:
        request: Items, delivery area and optional promo code.
        promo_lookup: Returns the PromoRecord for a normalized code, or None.
        area_fee_lookup: Returns the delivery fee for an area slug, or None.
        service_fee_policy: Maps the subtotal to the platform service fee.
        product_base: Sum of line totals targeted by a "product" promo.
        user_usage_count: Times the customer already used the promo, if the
            caller knows it.
        user_eligible: Whether the customer is on the promo's eligibility
            list, if the caller knows it.
        now: Evaluation instant for promo windows; defaults to the current
            UTC time. Pass it explicitly for reproducible results.

    Returns:
        A new ChargeBreakdown. Calling again with identical inputs returns
        an equal value.

    Raises:
        ValidationError: The request is malformed.
        UnknownAreaError: The delivery area has no fee.
        LookupFailedError: A collaborator could not be reached.
    """
    validate_request(request)
    now = datetime.now(timezone.utc) if now is None else as_utc(now)

    subtotal = ZERO
    item_discount_total = ZERO
    vat_total = ZERO
    for item in request.items:
        line_subtotal, line_discount, line_vat = price_line(item)
        subtotal += line_subtotal
        item_discount_total += line_discount
        vat_total += line_vat

    area = request.delivery_area.strip()
    delivery_charge = _resolve_delivery_charge(area, area_fee_lookup)

    code = normalize_code(request.promo_code)
    promo_discount_total = ZERO
    if code is None:
        promo_result = PromoResult(valid=False)
    else:
        record = guarded_lookup("promo", promo_lookup, code)
        promo_result = evaluate_promo(
            record,
            code=code,
            subtotal=subtotal,
            delivery_charge=delivery_charge,
            product_base=product_base,
            now=now,
            user_usage_count=user_usage_count,
            user_eligible=user_eligible,
            items=request.items,
        )
        if promo_result.valid:
            promo_discount_total = promo_result.discount_amount
        else:
            logger.info("promo_rejected", code=code, reason=promo_result.error_message)

    service_fee = service_fee_policy(quantize(subtotal))
    require_money(service_fee, errmsg.SERVICE_FEE_NEGATIVE)

    total_amount = (
        subtotal
        - item_discount_total
        - promo_discount_total
        + vat_total
        + delivery_charge
        + service_fee
    )
    if total_amount < 0:
        total_amount = ZERO

    breakdown = ChargeBreakdown(
        subtotal=quantize(subtotal),
        item_discount_total=quantize(item_discount_total),
        promo_discount_total=quantize(promo_discount_total),
        vat_total=quantize(vat_total),
        delivery_charge=quantize(delivery_charge),
        service_fee=quantize(service_fee),
        total_amount=quantize(total_amount),
        promo_result=_published(promo_result),
        delivery_area=area,
        items=tuple(item_breakdown(item) for item in request.items),
    )

    logger.debug(
        "charges_calculated",
        items=len(request.items),
        delivery_area=area,
        subtotal=str(breakdown.subtotal),
        promo_code=code,
        promo_discount=str(breakdown.promo_discount_total),
        total=str(breakdown.total_amount),
    )
    return breakdown
