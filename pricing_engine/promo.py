"""Promo code evaluation.

Checks run in a fixed order and stop at the first failure, so a customer
always sees the most fundamental reason first:

1. validity window (not yet active, expired)
2. total usage cap
3. per-user limit, when the caller supplies the user's count
4. minimum order amount
5. user eligibility, when the caller supplies it
6. restaurant restrictions, then category restrictions, against every line

A rejected promo never raises. It yields an invalid ``PromoResult`` and the
order is priced without a discount.
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .errors import errmsg
from .models import LineItem, PromoApplyOn, PromoRecord, PromoResult, PromoType, as_utc
from .money import HUNDRED, ZERO


def normalize_code(code: Optional[str]) -> Optional[str]:
    """Trim and upper-case a promo code. Blank codes normalize to None."""
    if code is None:
        return None
    normalized = code.strip().upper()
    return normalized or None


def discount_base(
    apply_on: PromoApplyOn,
    *,
    subtotal: Decimal,
    delivery_charge: Decimal,
    product_base: Optional[Decimal],
) -> Decimal:
    """Amount a promo discounts against.

    Which products a "product" promo targets is resolved by the caller, who
    passes the sum of the targeted line totals as ``product_base``.
    """
    if apply_on == PromoApplyOn.ORDER:
        return subtotal
    if apply_on == PromoApplyOn.DELIVERY:
        return delivery_charge
    return product_base if product_base is not None else ZERO


def _rejected(message: str, record: Optional[PromoRecord] = None, code: Optional[str] = None) -> PromoResult:
    return PromoResult(
        valid=False,
        error_message=message,
        code=code,
        promo_id=record.promo_id if record else None,
        promo_type=record.type if record else None,
    )


def check_eligibility(
    record: PromoRecord,
    *,
    subtotal: Decimal,
    now: datetime,
    user_usage_count: Optional[int] = None,
    user_eligible: Optional[bool] = None,
    items: Sequence[LineItem] = (),
) -> Optional[str]:
    """Return the first reason the promo cannot be used, or None."""
    now = as_utc(now)
    if now < record.starts_at:
        return errmsg.PROMO_NOT_YET_ACTIVE
    if record.ends_at is not None and now >= record.ends_at:
        return errmsg.PROMO_EXPIRED
    if record.max_usage is not None and record.usage_count >= record.max_usage:
        return errmsg.PROMO_USAGE_LIMIT
    if (
        record.per_user_limit is not None
        and user_usage_count is not None
        and user_usage_count >= record.per_user_limit
    ):
        return errmsg.PROMO_USER_LIMIT
    if record.min_order_amount is not None and subtotal < record.min_order_amount:
        return errmsg.PROMO_MIN_ORDER
    if user_eligible is False:
        return errmsg.PROMO_USER_NOT_ELIGIBLE
    if record.restaurant_ids and any(i.restaurant_id not in record.restaurant_ids for i in items):
        return errmsg.PROMO_RESTAURANT_RESTRICTED
    if record.category_ids and any(i.category_id not in record.category_ids for i in items):
        return errmsg.PROMO_CATEGORY_RESTRICTED
    return None


def compute_discount(record: PromoRecord, base: Decimal) -> Decimal:
    """Discount a promo yields against ``base``, never more than the base."""
    if record.type == PromoType.PERCENTAGE:
        raw = base * record.amount / HUNDRED
    else:
        # flat and cashback both reduce the payable total by a fixed amount
        raw = min(record.amount, base)
    if record.cap is not None:
        raw = min(raw, record.cap)
    return max(ZERO, min(raw, base))


def evaluate_promo(
    record: Optional[PromoRecord],
    *,
    code: str,
    subtotal: Decimal,
    delivery_charge: Decimal,
    product_base: Optional[Decimal] = None,
    now: datetime,
    user_usage_count: Optional[int] = None,
    user_eligible: Optional[bool] = None,
    items: Sequence[LineItem] = (),
) -> PromoResult:
    """Validate a looked-up promo and compute its discount.

    Args:
        record: The record found for ``code``, or None if the store has none.
        code: The normalized code the customer entered.
        subtotal: Cart subtotal at full precision.
        delivery_charge: Delivery fee for the selected area.
        product_base: Sum of targeted line totals for "product" promos.
        now: Evaluation instant; timezone-aware.
        user_usage_count: Times this customer already used the promo, if known.
        user_eligible: Whether the customer is on the promo's eligibility
            list, if the promo has one. None skips the check.
        items: Cart lines, checked against restaurant and category restrictions.

    Returns:
        A PromoResult; ``valid`` is False with a reason when the promo does not apply.
    """
    if record is None or not record.is_active:
        return _rejected(errmsg.PROMO_NOT_FOUND, code=code)

    reason = check_eligibility(
        record,
        subtotal=subtotal,
        now=now,
        user_usage_count=user_usage_count,
        user_eligible=user_eligible,
        items=items,
    )
    if reason is not None:
        return _rejected(reason, record, code)

    base = discount_base(
        record.apply_on,
        subtotal=subtotal,
        delivery_charge=delivery_charge,
        product_base=product_base,
    )
    if record.apply_on == PromoApplyOn.PRODUCT and base <= 0:
        return _rejected(errmsg.PROMO_NO_TARGET, record, code)

    discount = compute_discount(record, base)
    return PromoResult(
        valid=True,
        discount_amount=discount,
        code=code,
        promo_id=record.promo_id,
        promo_type=record.type,
        cashback_amount=discount if record.type == PromoType.CASHBACK else ZERO,
    )
