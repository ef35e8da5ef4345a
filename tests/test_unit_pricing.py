from datetime import date

import pytest

from rentflow.config import EngineConfig
from rentflow.exceptions import InvalidAmountError, InvalidDateError
from rentflow.models.order import OrderItem
from rentflow.services.common import round_money
from rentflow.services.pricing import (
    ON_TIME_REASON,
    chargeable_days,
    compute_adjustment,
    compute_cancellation,
    compute_order_totals,
    suggest_deposit_amount,
    validate_order_data,
)


def test_early_return_charges_used_days():
    p = compute_adjustment(10000, 5, 4, True, False)
    assert p.daily_rate == 2000
    assert p.adjusted_amount == 8000
    assert p.refund_amount == 2000
    assert p.penalty_amount == 0
    assert p.adjustment_reason == "Early return - adjusted for 4 actual day(s) used"
    assert not p.min_charge_applied
    assert p.adjustment_needed and p.adjustment_amount == -2000


def test_early_return_minimum_charge():
    p = compute_adjustment(10000, 5, 1, True, False)
    assert p.adjusted_amount == 5000
    assert p.refund_amount == 5000
    assert p.min_charge_applied
    assert p.adjustment_reason == "Early return - minimum 50% charge applied"


def test_late_return_penalty():
    p = compute_adjustment(10000, 5, 7, False, True, extra_days=1)
    assert p.penalty_amount == 3000
    assert p.adjusted_amount == 13000
    assert p.refund_amount == 0
    assert p.adjustment_reason == "Late return - 1 day(s) penalty applied"


def test_on_time_is_unchanged():
    p = compute_adjustment(10000, 5, 5, False, False)
    assert p.adjusted_amount == 10000
    assert p.refund_amount == 0 and p.penalty_amount == 0
    assert p.adjustment_reason == ON_TIME_REASON
    assert not p.adjustment_needed


def test_both_flags_is_an_error():
    with pytest.raises(InvalidDateError):
        compute_adjustment(10000, 5, 5, True, True)


@pytest.mark.parametrize("original", [1, 999.99, 10000, 123456.78])
@pytest.mark.parametrize("planned", [1, 3, 7, 30])
def test_early_return_bounds(original, planned):
    for actual in range(0, planned):
        p = compute_adjustment(original, planned, actual, True, False)
        assert round_money(original * 0.5) <= p.adjusted_amount <= round_money(original)
        assert abs(p.refund_amount + p.adjusted_amount - original) <= 0.01
        assert p.penalty_amount == 0


@pytest.mark.parametrize("extra", [1, 2, 10])
def test_late_return_penalty_grows_with_extra_days(extra):
    p = compute_adjustment(7000, 7, 7 + extra, False, True, extra_days=extra)
    assert p.penalty_amount == 1500 * extra
    assert p.adjusted_amount == 7000 + p.penalty_amount
    assert p.adjusted_amount > p.original_amount


def test_configured_ratios_are_used():
    cfg = EngineConfig(min_charge_ratio=0.25, late_penalty_multiplier=2.0)
    assert compute_adjustment(10000, 5, 1, True, False, config=cfg).adjusted_amount == 2500
    assert compute_adjustment(10000, 5, 8, False, True, extra_days=2, config=cfg).penalty_amount == 8000


@pytest.mark.parametrize("x, expected", [
    (2.675, 2.68),
    (-2.675, -2.68),
    (1.005, 1.01),
    (0.125, 0.13),
    (10.0, 10.0),
])
def test_round_money_halves_away_from_zero(x, expected):
    assert round_money(x) == expected


@pytest.mark.parametrize("bad", [-1, None, "abc", float("nan")])
def test_bad_amounts_are_rejected(bad):
    with pytest.raises(InvalidAmountError):
        compute_adjustment(bad, 5, 4, True, False)


def test_cancellation_fee():
    p = compute_cancellation(10000)
    assert p.adjusted_amount == 1000
    assert p.refund_amount == 9000
    assert "10%" in p.adjustment_reason

    free = compute_cancellation(10000, config=EngineConfig(cancellation_fee_pct=0))
    assert free.adjusted_amount == 0 and free.refund_amount == 10000


def test_order_totals_worked_example():
    items = [{"productId": "chair", "quantity": 10, "unitPrice": 200}]
    t = compute_order_totals(items, "2024-01-01", "2024-01-03", discount_pct=10, tax_rate_pct=16)
    assert t.chargeable_days == 3
    assert t.subtotal == 6000
    assert t.discount_amount == 600
    assert t.tax_amount == 864
    assert t.total_amount == 6264


def test_order_totals_default_tax_and_item_days():
    items = [
        OrderItem("tent", 1, 1000),
        OrderItem("stage", 1, 500, days_used=1),
    ]
    t = compute_order_totals(items, date(2024, 1, 1), date(2024, 1, 2))
    assert t.subtotal == 2500
    assert t.tax_amount == 400
    assert t.total_amount == 2900


def test_order_totals_override_days():
    t = compute_order_totals([OrderItem("tent", 2, 100)], "2024-01-01", "2024-01-05",
                             tax_rate_pct=0, chargeable_days_override=2)
    assert t.chargeable_days == 2
    assert t.total_amount == 400


@pytest.mark.parametrize("items", [
    [{"product_id": "x", "quantity": 0, "unit_price": 10}],
    [{"product_id": "x", "quantity": 1, "unit_price": -5}],
    [{"product_id": "x", "quantity": 1.5, "unit_price": 10}],
    ["not an item"],
])
def test_order_totals_rejects_bad_items(items):
    with pytest.raises(InvalidAmountError):
        compute_order_totals(items, "2024-01-01", "2024-01-02")


def test_order_totals_rejects_bad_discount():
    with pytest.raises(InvalidAmountError):
        compute_order_totals([OrderItem("x", 1, 1)], "2024-01-01", "2024-01-02", discount_pct=120)


def test_chargeable_days():
    assert chargeable_days("2024-01-01", "2024-01-01") == 1
    assert chargeable_days("2024-01-01", "2024-01-03") == 3
    with pytest.raises(InvalidDateError):
        chargeable_days("2024-01-03", "2024-01-01")


def test_validate_order_data_collects_every_problem():
    errors = validate_order_data(
        [{"quantity": 0, "unit_price": 10}, {"product_id": "ok", "quantity": 1, "unit_price": 5}],
        "2024-01-05",
        "2024-01-01",
    )
    messages = [e.message for e in errors]
    assert any("product ID" in m for m in messages)
    assert any("item 1" in m and "quantity" in m for m in messages)
    assert any("before start" in m for m in messages)
    assert not any("item 2" in m for m in messages)


def test_validate_order_data_valid_and_empty():
    assert validate_order_data([OrderItem("x", 1, 1)], "2024-01-01", "2024-01-02") == []
    errors = validate_order_data([], None, "2024-01-02")
    kinds = sorted(e.kind for e in errors)
    assert kinds == ["invalid_amount", "invalid_date"]


def test_suggested_deposit():
    assert suggest_deposit_amount(6264) == 1252.8
    assert suggest_deposit_amount(1000, ratio=0.5) == 500


def test_order_totals_two_units_three_days():
    t = compute_order_totals([OrderItem("generator", 2, 1000)], "2024-03-01", "2024-03-03",
                             discount_pct=10, tax_rate_pct=16)
    assert (t.subtotal, t.discount_amount, t.tax_amount, t.total_amount) == (6000, 600, 864, 6264)


@pytest.mark.parametrize("flag", ["false", "true", 0, 1, None])
def test_return_flags_must_be_booleans(flag):
    with pytest.raises(InvalidDateError):
        compute_adjustment(10000, 5, 4, flag, False)
    with pytest.raises(InvalidDateError):
        compute_adjustment(10000, 5, 4, False, flag)


def test_early_return_longer_than_planned_is_an_error():
    with pytest.raises(InvalidDateError):
        compute_adjustment(10000, 5, 6, True, False)
    # using every planned day is allowed and costs the original amount
    assert compute_adjustment(10000, 5, 5, True, False).adjusted_amount == 10000
