"""
Status changes through OrderService: transition check, usage, pricing,
deposit settlement and the single versioned commit.
"""
import logging
from datetime import date, datetime

import pytest

from rentflow.config import EngineConfig
from rentflow.models.deposit import DepositRecord
from rentflow.services.order_service import OrderService
from rentflow.utils.constants import DepositStatus, OrderStatus

NOW = datetime(2024, 1, 8, 9, 0)


def _collected(amount):
    return DepositRecord(amount=amount, status=DepositStatus.COLLECTED, collected_at=NOW)


def test_early_return_reprices_and_refunds_deposit(store, make_order):
    order = make_order(deposit=_collected(5000))
    r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-04",
                                         deduction_amount=1000, now=NOW)
    assert r.ok, r.message
    out = r.value
    assert out.usage.is_early_return and out.usage.actual_days == 4
    assert out.pricing.adjusted_amount == 8000
    assert out.pricing.refund_amount == 2000
    assert out.order.total_amount == 8000
    assert out.order.status == OrderStatus.COMPLETED
    assert out.deposit.status == DepositStatus.REFUNDED
    assert out.deposit.refund_amount == 4000

    stored = store.get_order(order.id)
    assert stored.version == order.version + 1
    assert stored.total_amount == 8000
    last = stored.history[-1]
    assert (last.from_status, last.to_status) == ("in_use", "completed")
    assert last.actual_date == date(2024, 1, 4)
    assert last.amount_before == 10000 and last.amount_after == 8000
    assert last.usage.refund_amount == 2000
    assert not last.usage.manual_override


def test_late_return_adds_penalty(store, make_order):
    order = make_order()
    r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-07", now=NOW)
    assert r.ok, r.message
    assert r.value.usage.extra_days == 1
    assert r.value.pricing.penalty_amount == 3000
    assert store.get_order(order.id).total_amount == 13000


def test_on_time_return_keeps_amount(store, make_order):
    order = make_order()
    r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-06", now=NOW)
    assert r.ok
    assert r.value.usage.is_within_grace
    assert r.value.order.total_amount == 10000


def test_over_deduction_forfeits_deposit(make_order):
    order = make_order(deposit=_collected(5000))
    r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-05",
                                         deduction_amount=6000, deduction_reason="lost table",
                                         now=NOW)
    assert r.ok
    dep = r.value.order.deposit
    assert dep.status == DepositStatus.FORFEITED
    assert dep.refund_amount == 0
    assert dep.deduction_amount == 6000
    assert dep.deduction_reason == "lost table"


def test_pending_deposit_is_left_alone_on_completion(make_order, caplog):
    order = make_order(deposit=DepositRecord(amount=500))
    with caplog.at_level(logging.WARNING, logger="rentflow"):
        r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-05", now=NOW)
    assert r.ok
    assert r.value.order.deposit.status == DepositStatus.PENDING
    assert "not settled" in caplog.text


def test_invalid_transition_changes_nothing(store, make_order):
    order = make_order(status=OrderStatus.PENDING)
    r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-04", now=NOW)
    assert not r.ok
    assert r.kind == "invalid_transition"
    stored = store.get_order(order.id)
    assert stored.status == OrderStatus.PENDING
    assert stored.version == order.version
    assert stored.history == []


def test_terminal_order_cannot_move(make_order):
    order = make_order(status=OrderStatus.COMPLETED)
    r = OrderService.apply_status_change(order, "cancelled", now=NOW)
    assert r.kind == "invalid_transition"


def test_completion_requires_actual_date(store, make_order):
    order = make_order()
    r = OrderService.apply_status_change(order, "completed", now=NOW)
    assert r.kind == "invalid_date"
    assert store.get_order(order.id).version == order.version


def test_bad_actual_date(make_order):
    r = OrderService.apply_status_change(make_order(), "completed", actual_date="soon", now=NOW)
    assert r.kind == "invalid_date"


@pytest.mark.parametrize("days, expected, reason", [
    (3, 6000, "Early return - adjusted for 3 actual day(s) used"),
    (1, 5000, "Early return - minimum 50% charge applied"),
    (5, 10000, "On-time return (within grace period)"),
    (7, 16000, "Late return - 2 day(s) penalty applied"),
])
def test_manual_day_override(store, make_order, days, expected, reason):
    order = make_order()
    r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-05",
                                         chargeable_days_override=days, now=NOW)
    assert r.ok, r.message
    assert r.value.order.total_amount == expected
    audit = store.get_order(order.id).history[-1].usage
    assert audit.manual_override
    assert audit.actual_days == days
    assert audit.adjustment_reason == reason


def test_negative_override_is_rejected(make_order):
    r = OrderService.apply_status_change(make_order(), "completed", actual_date="2024-01-05",
                                         chargeable_days_override=-1, now=NOW)
    assert r.kind == "invalid_amount"


def test_repricing_starts_from_base_amount(make_order):
    # total already differs from the item-line price; adjustment ignores it
    order = make_order(total=12345)
    r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-04", now=NOW)
    assert r.value.pricing.original_amount == 10000
    assert r.value.order.total_amount == 8000
    assert r.value.order.history[-1].amount_before == 12345


def test_cancellation_keeps_fee(store, make_order):
    order = make_order(status=OrderStatus.CONFIRMED)
    r = OrderService.apply_status_change(order, "cancelled", now=NOW)
    assert r.ok
    assert r.value.pricing.refund_amount == 9000
    stored = store.get_order(order.id)
    assert stored.status == OrderStatus.CANCELLED
    assert stored.total_amount == 1000
    assert stored.history[-1].actual_date is None


def test_entering_active_state_records_date_only(store, make_order):
    order = make_order(status=OrderStatus.OUT_FOR_DELIVERY)
    r = OrderService.apply_status_change(order, "delivered", actual_date="2024-01-01", now=NOW)
    assert r.ok
    assert r.value.pricing is None
    assert r.value.usage.actual_date == date(2024, 1, 1)
    stored = store.get_order(order.id)
    assert stored.total_amount == 10000
    assert stored.history[-1].actual_date == date(2024, 1, 1)
    assert stored.history[-1].usage is None


def test_non_dated_step_needs_no_date(make_order):
    order = make_order(status=OrderStatus.PENDING)
    r = OrderService.apply_status_change(order, "confirmed", now=NOW)
    assert r.ok
    assert r.value.usage is None and r.value.pricing is None


def test_stale_snapshot_conflicts(store, make_order):
    order = make_order()
    first = OrderService.apply_status_change(order, "return_scheduled", actual_date="2024-01-05",
                                             now=NOW)
    assert first.ok
    second = OrderService.apply_status_change(order, "completed", actual_date="2024-01-05", now=NOW)
    assert second.kind == "conflict"
    stored = store.get_order(order.id)
    assert stored.status == OrderStatus.RETURN_SCHEDULED
    assert len(stored.history) == 1


def test_failed_settlement_aborts_whole_change(store, make_order):
    order = make_order(deposit=_collected(5000))
    r = OrderService.apply_status_change(order, "completed", actual_date="2024-01-04",
                                         deduction_amount=-10, now=NOW)
    assert r.kind == "invalid_amount"
    stored = store.get_order(order.id)
    assert stored.status == OrderStatus.IN_USE
    assert stored.total_amount == 10000
    assert stored.deposit.status == DepositStatus.COLLECTED


def test_caller_snapshot_is_not_mutated(make_order):
    order = make_order()
    OrderService.apply_status_change(order, "completed", actual_date="2024-01-04", now=NOW)
    assert order.status == OrderStatus.IN_USE
    assert order.total_amount == 10000
    assert order.history == []


def test_basic_profile_flow(store, make_order):
    cfg = EngineConfig(profile="basic", data_path=store.path)
    order = make_order(status=OrderStatus.CONFIRMED)
    r = OrderService.apply_status_change(order, "in_progress", actual_date="2024-01-01",
                                         config=cfg, now=NOW)
    assert r.ok, r.message
    r = OrderService.apply_status_change(r.value.order, "completed", actual_date="2024-01-07",
                                         config=cfg, now=NOW)
    assert r.ok, r.message
    assert r.value.order.total_amount == 13000
    assert [h.to_status for h in store.get_order(order.id).history] == ["in_progress", "completed"]


def test_rejection_is_logged(make_order, caplog):
    order = make_order(status=OrderStatus.PENDING)
    with caplog.at_level(logging.WARNING, logger="rentflow"):
        OrderService.apply_status_change(order, "completed", now=NOW)
    assert "rejected" in caplog.text


def test_list_status_comes_back_as_result(store, make_order):
    order = make_order()
    r = OrderService.apply_status_change(order, ["completed"], actual_date="2024-01-05", now=NOW)
    assert not r.ok
    assert r.kind == "invalid_transition"
    assert store.get_order(order.id).status == OrderStatus.IN_USE
