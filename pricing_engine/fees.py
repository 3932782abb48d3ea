"""Service fee policies.

A policy is any callable taking the order subtotal and returning the fee.
Keeping the policy outside the engine lets the platform change it per
tenant without touching the arithmetic.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Optional

from .errors import ValidationError, errmsg
from .money import HUNDRED, ZERO

if TYPE_CHECKING:
    from .config import PricingSettings

ServiceFeePolicy = Callable[[Decimal], Decimal]


def no_service_fee(subtotal: Decimal) -> Decimal:
    return ZERO


def flat_service_fee(amount: Decimal) -> ServiceFeePolicy:
    """Charge the same fee on every order."""
    if amount < 0:
        raise ValidationError(errmsg.SERVICE_FEE_NEGATIVE)

    def policy(subtotal: Decimal) -> Decimal:
        return amount

    return policy


def percentage_service_fee(percent: Decimal, cap: Optional[Decimal] = None) -> ServiceFeePolicy:
    """Charge a share of the subtotal, optionally capped."""
    if percent < 0 or (cap is not None and cap < 0):
        raise ValidationError(errmsg.SERVICE_FEE_NEGATIVE)

    def policy(subtotal: Decimal) -> Decimal:
        fee = subtotal * percent / HUNDRED
        if cap is not None:
            fee = min(fee, cap)
        return fee

    return policy


def combined_service_fee(*policies: ServiceFeePolicy) -> ServiceFeePolicy:
    def policy(subtotal: Decimal) -> Decimal:
        return sum((p(subtotal) for p in policies), ZERO)

    return policy


def policy_from_settings(settings: "PricingSettings") -> ServiceFeePolicy:
    """Build the fee policy described by the environment settings."""
    policies = []
    if settings.service_fee_flat > 0:
        policies.append(flat_service_fee(settings.service_fee_flat))
    if settings.service_fee_percent > 0:
        policies.append(percentage_service_fee(settings.service_fee_percent, settings.service_fee_cap))
    if not policies:
        return no_service_fee
    if len(policies) == 1:
        return policies[0]
    return combined_service_fee(*policies)
