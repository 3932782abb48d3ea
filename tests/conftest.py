"""Shared pytest fixtures for pricing tests."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from pricing_engine.lookups import AreaFeeSchedule, PromoStore
from pricing_engine.models import ChargeRequest, LineItem, PromoApplyOn, PromoRecord, PromoType

from .fixtures import NOW


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_item():
    """Factory for line items with sensible defaults."""

    def _make(
        product_id: str = "burger",
        restaurant_id: str = "r-1",
        quantity: int = 1,
        unit_price: str = "10.00",
        modifier_price: str = "0",
        item_discount: str = "0",
        item_vat: str = "0",
        category_id: str | None = None,
    ) -> LineItem:
        return LineItem(
            product_id=product_id,
            restaurant_id=restaurant_id,
            quantity=quantity,
            unit_price=Decimal(unit_price),
            modifier_price=Decimal(modifier_price),
            item_discount=Decimal(item_discount),
            item_vat=Decimal(item_vat),
            category_id=category_id,
        )

    return _make


@pytest.fixture
def make_promo():
    """Factory for promo records valid at NOW unless overridden."""

    def _make(
        code: str = "WELCOME20",
        type: PromoType = PromoType.PERCENTAGE,
        amount: str = "20",
        apply_on: PromoApplyOn = PromoApplyOn.ORDER,
        **overrides,
    ) -> PromoRecord:
        fields = dict(
            code=code,
            type=type,
            amount=Decimal(amount),
            apply_on=apply_on,
            starts_at=NOW - timedelta(days=7),
            ends_at=NOW + timedelta(days=7),
        )
        fields.update(overrides)
        return PromoRecord(**fields)

    return _make


@pytest.fixture
def areas() -> AreaFeeSchedule:
    return AreaFeeSchedule({"gulshan": Decimal("3.00"), "banani": Decimal("4.50")})


@pytest.fixture
def no_promos() -> PromoStore:
    return PromoStore([])


@pytest.fixture
def scenario_cart(make_item) -> ChargeRequest:
    """One item: 10.00 + 2.50 modifiers, three units, delivered to gulshan."""
    return ChargeRequest(
        items=(make_item(unit_price="10.00", modifier_price="2.50", quantity=3),),
        delivery_area="gulshan",
    )
