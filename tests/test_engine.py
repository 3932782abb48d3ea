"""Tests for charge calculation."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from pricing_engine.engine import calculate_charges
from pricing_engine.errors import LookupFailedError, UnknownAreaError, ValidationError, errmsg
from pricing_engine.fees import flat_service_fee, no_service_fee, percentage_service_fee
from pricing_engine.lookups import PromoStore
from pricing_engine.models import ChargeRequest, PromoApplyOn, PromoRecord, PromoType

from .fixtures import NOW


def _calc(request, areas, promos=None, fee=no_service_fee, **kwargs):
    kwargs.setdefault("now", NOW)
    if promos is None:
        promos = PromoStore([])
    return calculate_charges(request, promos, areas, fee, **kwargs)


def _with_promo(request: ChargeRequest, code: str) -> ChargeRequest:
    return ChargeRequest(items=request.items, delivery_area=request.delivery_area, promo_code=code)


class TestScenarios:
    """End-to-end pricing scenarios."""

    def test_no_promo(self, scenario_cart, areas) -> None:
        """10.00 + 2.50 modifiers x3 with 3.00 delivery totals 40.50."""
        result = _calc(scenario_cart, areas)
        assert result.subtotal == Decimal("37.50")
        assert result.promo_discount_total == Decimal("0.00")
        assert result.delivery_charge == Decimal("3.00")
        assert result.total_amount == Decimal("40.50")
        assert result.promo_result.valid is False
        assert result.promo_result.error_message is None

    def test_capped_percentage_promo(self, scenario_cart, areas, make_promo) -> None:
        """20% capped at 5.00 brings the total to 35.50."""
        promos = PromoStore([make_promo(code="WELCOME20", cap=Decimal("5.00"))])
        result = _calc(_with_promo(scenario_cart, "welcome20"), areas, promos)
        assert result.promo_result.valid is True
        assert result.promo_result.code == "WELCOME20"
        assert result.promo_result.discount_amount == Decimal("5.00")
        assert result.promo_discount_total == Decimal("5.00")
        assert result.total_amount == Decimal("35.50")

    def test_expired_promo_keeps_full_price(self, scenario_cart, areas, make_promo) -> None:
        """An expired promo is reported and the total is unchanged."""
        promos = PromoStore([make_promo(ends_at=NOW - timedelta(days=1))])
        result = _calc(_with_promo(scenario_cart, "WELCOME20"), areas, promos)
        assert result.promo_result.valid is False
        assert result.promo_result.error_message == "Promo expired"
        assert result.total_amount == Decimal("40.50")

    def test_unknown_area(self, scenario_cart, areas) -> None:
        """An area missing from the schedule aborts the calculation."""
        request = ChargeRequest(items=scenario_cart.items, delivery_area="mirpur")
        with pytest.raises(UnknownAreaError) as exc:
            _calc(request, areas)
        assert exc.value.area == "mirpur"

    def test_flat_delivery_promo_capped_at_fee(self, scenario_cart, areas, make_promo) -> None:
        """Flat 50 on a 3.00 delivery fee discounts only 3.00."""
        promos = PromoStore([
            make_promo(code="FREESHIP", type=PromoType.FLAT, amount="50", apply_on=PromoApplyOn.DELIVERY),
        ])
        result = _calc(_with_promo(scenario_cart, "FREESHIP"), areas, promos)
        assert result.promo_discount_total == Decimal("3.00")
        assert result.delivery_charge == Decimal("3.00")
        assert result.total_amount == Decimal("37.50")

    def test_unknown_code_is_not_fatal(self, scenario_cart, areas) -> None:
        """A code nobody issued degrades to no discount."""
        result = _calc(_with_promo(scenario_cart, "NOPE"), areas)
        assert result.promo_result.valid is False
        assert result.promo_result.error_message == errmsg.PROMO_NOT_FOUND
        assert result.total_amount == Decimal("40.50")

    def test_blank_code_is_absent(self, scenario_cart, areas) -> None:
        """Whitespace-only codes are treated as no code."""
        result = _calc(_with_promo(scenario_cart, "   "), areas)
        assert result.promo_result.error_message is None


class TestArithmetic:
    """Tests for sums, discounts, VAT and fees."""

    def test_item_discount_and_vat_scale_with_quantity(self, make_item, areas) -> None:
        """Per-unit discount and VAT multiply by quantity."""
        request = ChargeRequest(
            items=(make_item(unit_price="20.00", item_discount="2.00", item_vat="1.50", quantity=2),),
            delivery_area="gulshan",
        )
        result = _calc(request, areas)
        assert result.subtotal == Decimal("40.00")
        assert result.item_discount_total == Decimal("4.00")
        assert result.vat_total == Decimal("3.00")
        assert result.total_amount == Decimal("42.00")

    def test_item_breakdown(self, make_item, areas) -> None:
        """Each line reports its own subtotal and total."""
        request = ChargeRequest(
            items=(
                make_item(product_id="a", unit_price="5.00", modifier_price="1.00", quantity=2, item_vat="0.25"),
                make_item(product_id="b", unit_price="3.00"),
            ),
            delivery_area="banani",
        )
        result = _calc(request, areas)
        first, second = result.items
        assert first.item_subtotal == Decimal("12.00")
        assert first.item_vat == Decimal("0.50")
        assert first.item_total == Decimal("12.50")
        assert second.item_total == Decimal("3.00")
        assert result.subtotal == Decimal("15.00")

    def test_rounds_only_published_fields(self, make_item, areas) -> None:
        """Fractions of a cent accumulate before rounding half-up."""
        request = ChargeRequest(
            items=(make_item(unit_price="0.335", quantity=3),),
            delivery_area="gulshan",
        )
        result = _calc(request, areas)
        assert result.subtotal == Decimal("1.01")
        assert result.total_amount == Decimal("4.01")

    def test_service_fee_policy(self, scenario_cart, areas) -> None:
        """The service fee comes from the supplied policy."""
        result = _calc(scenario_cart, areas, fee=flat_service_fee(Decimal("1.25")))
        assert result.service_fee == Decimal("1.25")
        assert result.total_amount == Decimal("41.75")

    def test_percentage_service_fee_sees_subtotal(self, scenario_cart, areas) -> None:
        """Percentage policies are computed from the subtotal."""
        result = _calc(scenario_cart, areas, fee=percentage_service_fee(Decimal("2")))
        assert result.service_fee == Decimal("0.75")

    def test_negative_service_fee_rejected(self, scenario_cart, areas) -> None:
        """A policy returning a negative fee is a caller error."""
        with pytest.raises(ValidationError):
            _calc(scenario_cart, areas, fee=lambda subtotal: Decimal("-1"))

    def test_total_floored_at_zero(self, make_item, areas, make_promo) -> None:
        """Discounts cannot push the total below zero."""
        request = ChargeRequest(
            items=(make_item(unit_price="10.00", item_discount="10.00"),),
            delivery_area="gulshan",
            promo_code="ALL",
        )
        promos = PromoStore([make_promo(code="ALL", type=PromoType.FLAT, amount="100")])
        result = _calc(request, areas, promos)
        assert result.promo_discount_total == Decimal("10.00")
        assert result.total_amount == Decimal("0.00")

    def test_cashback_reduces_total(self, scenario_cart, areas, make_promo) -> None:
        """Cashback discounts the payable total and is echoed as advisory."""
        promos = PromoStore([make_promo(code="CB5", type=PromoType.CASHBACK, amount="5")])
        result = _calc(_with_promo(scenario_cart, "CB5"), areas, promos)
        assert result.promo_discount_total == Decimal("5.00")
        assert result.promo_result.cashback_amount == Decimal("5.00")
        assert result.total_amount == Decimal("35.50")

    def test_min_order_uses_subtotal(self, scenario_cart, areas, make_promo) -> None:
        """The minimum is compared with the cart subtotal."""
        promos = PromoStore([make_promo(min_order_amount=Decimal("40.00"))])
        result = _calc(_with_promo(scenario_cart, "WELCOME20"), areas, promos)
        assert result.promo_result.error_message == errmsg.PROMO_MIN_ORDER

    def test_per_user_limit_injected(self, scenario_cart, areas, make_promo) -> None:
        """The caller's usage count is checked against the per-user limit."""
        promos = PromoStore([make_promo(per_user_limit=2)])
        result = _calc(_with_promo(scenario_cart, "WELCOME20"), areas, promos, user_usage_count=2)
        assert result.promo_result.error_message == errmsg.PROMO_USER_LIMIT


    def test_naive_promo_window(self, scenario_cart, areas) -> None:
        """Promo records stored without a timezone still price."""
        record = PromoRecord(
            code="NEWYEAR",
            type=PromoType.FLAT,
            amount=Decimal("2.00"),
            starts_at=datetime(2026, 1, 1),
            ends_at=datetime(2027, 1, 1),
        )
        result = _calc(_with_promo(scenario_cart, "newyear"), areas, PromoStore([record]))
        assert result.promo_result.valid is True
        assert result.total_amount == Decimal("38.50")

    def test_restaurant_restricted_promo(self, make_item, areas, make_promo) -> None:
        """A promo limited to one restaurant rejects mixed carts."""
        request = ChargeRequest(
            items=(make_item(restaurant_id="r-1"), make_item(restaurant_id="r-2")),
            delivery_area="gulshan",
            promo_code="WELCOME20",
        )
        promos = PromoStore([make_promo(restaurant_ids={"r-1"})])
        result = _calc(request, areas, promos)
        assert result.promo_result.error_message == errmsg.PROMO_RESTAURANT_RESTRICTED
        assert result.total_amount == Decimal("23.00")

    def test_category_restricted_promo(self, make_item, areas, make_promo) -> None:
        """A promo limited to a category applies when every line matches."""
        request = ChargeRequest(
            items=(make_item(category_id="pizza", unit_price="20.00"),),
            delivery_area="gulshan",
            promo_code="WELCOME20",
        )
        promos = PromoStore([make_promo(category_ids={"pizza"})])
        result = _calc(request, areas, promos)
        assert result.promo_discount_total == Decimal("4.00")

    def test_ineligible_user(self, scenario_cart, areas, make_promo) -> None:
        """The caller's eligibility answer is honored."""
        promos = PromoStore([make_promo()])
        result = _calc(_with_promo(scenario_cart, "WELCOME20"), areas, promos, user_eligible=False)
        assert result.promo_result.error_message == errmsg.PROMO_USER_NOT_ELIGIBLE
        assert result.total_amount == Decimal("40.50")


class TestProperties:
    """Invariants that hold for every calculation."""

    def test_idempotent(self, scenario_cart, areas, make_promo) -> None:
        """Identical inputs yield equal breakdowns."""
        promos = PromoStore([make_promo(cap=Decimal("5.00"))])
        request = _with_promo(scenario_cart, "WELCOME20")
        assert _calc(request, areas, promos) == _calc(request, areas, promos)

    @pytest.mark.parametrize("quantity", [1, 2, 5, 10])
    def test_subtotal_monotonic_in_quantity(self, make_item, areas, quantity) -> None:
        """More units never lower the subtotal."""
        smaller = ChargeRequest(items=(make_item(quantity=quantity),), delivery_area="gulshan")
        larger = ChargeRequest(items=(make_item(quantity=quantity + 1),), delivery_area="gulshan")
        assert _calc(larger, areas).subtotal >= _calc(smaller, areas).subtotal

    def test_discount_bounded_by_base(self, scenario_cart, areas, make_promo) -> None:
        """No promo discounts more than its base."""
        promos = PromoStore([make_promo(code="HUGE", type=PromoType.FLAT, amount="1000")])
        result = _calc(_with_promo(scenario_cart, "HUGE"), areas, promos)
        assert result.promo_discount_total == result.subtotal

    def test_naive_now_treated_as_utc(self, scenario_cart, areas, make_promo) -> None:
        """A naive clock value is read as UTC."""
        promos = PromoStore([make_promo(cap=Decimal("5.00"))])
        request = _with_promo(scenario_cart, "WELCOME20")
        result = _calc(request, areas, promos, now=NOW.replace(tzinfo=None))
        assert result.promo_result.valid is True


class TestValidation:
    """Tests for malformed requests."""

    def test_empty_cart(self, areas) -> None:
        """A cart needs at least one item."""
        with pytest.raises(ValidationError) as exc:
            _calc(ChargeRequest(items=(), delivery_area="gulshan"), areas)
        assert exc.value.message == errmsg.ITEMS_REQUIRED

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, make_item, areas, quantity) -> None:
        """Quantities start at one."""
        request = ChargeRequest(items=(make_item(quantity=quantity),), delivery_area="gulshan")
        with pytest.raises(ValidationError):
            _calc(request, areas)

    def test_negative_price(self, make_item, areas) -> None:
        """Prices cannot be negative."""
        request = ChargeRequest(items=(make_item(modifier_price="-0.50"),), delivery_area="gulshan")
        with pytest.raises(ValidationError):
            _calc(request, areas)

    def test_discount_above_price(self, make_item, areas) -> None:
        """An item discount larger than its price is rejected."""
        request = ChargeRequest(items=(make_item(unit_price="5.00", item_discount="6.00"),), delivery_area="gulshan")
        with pytest.raises(ValidationError) as exc:
            _calc(request, areas)
        assert exc.value.message == errmsg.DISCOUNT_EXCEEDS_PRICE

    def test_blank_area(self, make_item, areas) -> None:
        """A delivery area is required."""
        with pytest.raises(ValidationError):
            _calc(ChargeRequest(items=(make_item(),), delivery_area=" "), areas)

    def test_validation_before_lookup(self, areas) -> None:
        """Invalid requests never reach the collaborators."""
        calls = []

        def area_lookup(slug):
            calls.append(slug)
            return Decimal("3.00")

        with pytest.raises(ValidationError):
            calculate_charges(ChargeRequest(items=(), delivery_area="x"), PromoStore([]), area_lookup, no_service_fee)
        assert calls == []


class TestCollaboratorFailures:
    """Tests for lookup failures surfacing from the engine."""

    def test_area_outage(self, scenario_cart) -> None:
        """An unreachable fee schedule is a lookup failure, not an unknown area."""

        def area_lookup(slug):
            raise TimeoutError("fee schedule timed out")

        with pytest.raises(LookupFailedError) as exc:
            _calc(scenario_cart, area_lookup)
        assert exc.value.collaborator == "area_fee"

    def test_promo_outage(self, scenario_cart, areas) -> None:
        """An unreachable promo store aborts rather than silently dropping the promo."""

        def promo_lookup(code):
            raise ConnectionRefusedError("promo store down")

        with pytest.raises(LookupFailedError) as exc:
            _calc(_with_promo(scenario_cart, "WELCOME20"), areas, promo_lookup)
        assert exc.value.collaborator == "promo"
