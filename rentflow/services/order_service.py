"""
Order status changes and their money/deposit consequences.

OrderService is the public face of the engine. Every method returns a
Result instead of raising: ``result.ok`` with ``result.value``, or
``result.error`` with ``result.kind`` in {invalid_transition, invalid_state,
invalid_date, invalid_amount, conflict, not_found}.

Order-changing methods take the snapshot the caller read, compute on
copies, and write once through the store's compare-and-swap. A lost race
comes back as ``conflict``; the caller re-reads and starts again.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, Optional

from rentflow.config import EngineConfig, current_config
from rentflow.exceptions import InvalidAmountError, InvalidDateError, InvalidStateError, OrderEngineError
from rentflow.models.deposit import DepositRecord
from rentflow.models.order import RentalOrder, StatusChange, UsageCalculation
from rentflow.models.store import OrderStore
from rentflow.services import common
from rentflow.services.common import Result, guarded, require_int, require_number, round_money
from rentflow.services.deposit_service import DepositLedger
from rentflow.services.pricing import (
    PricingResult,
    compute_adjustment,
    compute_cancellation,
    compute_order_totals,
    normalize_items,
    suggest_deposit_amount,
    validate_order_data,
)
from rentflow.services.transitions import StatusTransitionEngine
from rentflow.services.usage import UsageResult, compute_usage, days_overdue
from rentflow.utils.constants import DepositStatus
from rentflow.utils.dates import as_date, business_now, fmt_date, optional_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionCheck:
    allowed: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {"allowed": self.allowed, "reason": self.reason}


@dataclass(frozen=True)
class ChangeOutcome:
    """What a committed change produced. ``order`` is the stored snapshot (new version)."""
    order: RentalOrder
    usage: Optional[UsageResult] = None
    pricing: Optional[PricingResult] = None
    deposit: Optional[DepositRecord] = None

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "usage": self.usage.to_dict() if self.usage else None,
            "pricing": self.pricing.to_dict() if self.pricing else None,
            "deposit": self.deposit.to_dict() if self.deposit else None,
        }


@dataclass(frozen=True)
class _DayCounts:
    planned_days: int
    actual_days: int
    is_early_return: bool
    is_late_return: bool
    is_within_grace: bool
    extra_days: int
    manual_override: bool = False

    @classmethod
    def from_usage(cls, usage: UsageResult) -> "_DayCounts":
        return cls(
            planned_days=usage.planned_days,
            actual_days=usage.actual_days,
            is_early_return=usage.is_early_return,
            is_late_return=usage.is_late_return,
            is_within_grace=usage.is_within_grace,
            extra_days=usage.extra_days,
        )

    @classmethod
    def from_override(cls, days: int, default_days: int) -> "_DayCounts":
        """Manual day count measured against the days the original price covers."""
        return cls(
            planned_days=default_days,
            actual_days=days,
            is_early_return=days < default_days,
            is_late_return=days > default_days,
            is_within_grace=days == default_days,
            extra_days=max(0, days - default_days),
            manual_override=True,
        )


def _resolve(store, config):
    return (store or common._store()), (config or current_config())


def _with_history(order: RentalOrder, entry: StatusChange) -> RentalOrder:
    updated = copy.deepcopy(order)
    updated.history = [*order.history, entry]
    return updated


class OrderService:
    """Order lifecycle: create, change status, deposits, payments, reports."""

    # --------------- Pure calculators ---------------
    @staticmethod
    def validate_transition(current_status: str, requested_status: str,
                            config: Optional[EngineConfig] = None) -> TransitionCheck:
        cfg = config or current_config()
        reason = StatusTransitionEngine(cfg.profile).check(current_status, requested_status)
        return TransitionCheck(allowed=reason is None, reason=reason)

    @staticmethod
    def compute_usage(planned_start, planned_end, actual_date, grace_days: Optional[int] = None,
                      config: Optional[EngineConfig] = None) -> Result:
        cfg = config or current_config()
        grace = cfg.grace_days if grace_days is None else grace_days
        return guarded(compute_usage, planned_start, planned_end, actual_date, grace, tz=cfg.tz)

    @staticmethod
    def compute_pricing(original_amount, planned_days, actual_days, is_early_return: bool,
                        is_late_return: bool, extra_days=0,
                        config: Optional[EngineConfig] = None) -> Result:
        return guarded(compute_adjustment, original_amount, planned_days, actual_days,
                       is_early_return, is_late_return, extra_days, config=config)

    @staticmethod
    def compute_order_totals(items, start, end, discount_pct=0.0, tax_rate_pct=None,
                             chargeable_days=None, config: Optional[EngineConfig] = None) -> Result:
        return guarded(compute_order_totals, items, start, end, discount_pct, tax_rate_pct,
                       chargeable_days, config=config)

    # --------------- Queries ---------------
    @staticmethod
    def get_order(order_id: str, store: Optional[OrderStore] = None) -> Result:
        st = store or common._store()
        return guarded(st.get_order, order_id)

    @staticmethod
    def overdue_orders(as_of, grace_days: Optional[int] = None, store: Optional[OrderStore] = None,
                       config: Optional[EngineConfig] = None) -> Result:
        """
        Orders still with the customer past planned end + grace, most overdue first.
        """
        st, cfg = _resolve(store, config)
        grace = cfg.grace_days if grace_days is None else grace_days

        def _run():
            profile = StatusTransitionEngine(cfg.profile).profile
            today = as_date(as_of, "as-of date", cfg.tz)
            rows = []
            for order in st.list_orders():
                if not profile.is_active(order.status):
                    continue
                late = days_overdue(order.rental_end_date, today, grace)
                if late <= 0:
                    continue
                rows.append({
                    "order_id": order.id,
                    "client": order.client,
                    "status": order.status,
                    "rental_end_date": fmt_date(order.rental_end_date),
                    "days_overdue": late,
                    "total_amount": order.total_amount,
                })
            rows.sort(key=lambda r: (-r["days_overdue"], r["rental_end_date"]))
            return rows

        return guarded(_run)

    # --------------- Commands ---------------
    @staticmethod
    def create_order(items: Iterable, start, end, discount_pct=0.0, tax_rate_pct=None,
                     chargeable_days=None, deposit_amount=None, client: Optional[str] = None,
                     notes: str = "", store: Optional[OrderStore] = None,
                     config: Optional[EngineConfig] = None, now: Optional[datetime] = None) -> Result:
        """
        Validate and price a new order, then store it as ``pending``.
        A deposit amount attaches a pending deposit; pass "suggested" to use
        the configured share of the total.
        """
        st, cfg = _resolve(store, config)

        def _run():
            items_list = list(items or [])
            errors = validate_order_data(items_list, start, end, tz=cfg.tz)
            if errors:
                first = errors[0]
                raise type(first)("; ".join(e.message for e in errors))

            tax = cfg.tax_rate_pct if tax_rate_pct is None else tax_rate_pct
            totals = compute_order_totals(items_list, start, end, discount_pct, tax,
                                          chargeable_days, config=cfg)
            deposit = None
            if deposit_amount is not None:
                if deposit_amount == "suggested":
                    amount = suggest_deposit_amount(totals.total_amount, cfg.deposit_ratio)
                else:
                    amount = round_money(require_number(deposit_amount, "deposit amount"))
                deposit = DepositRecord(amount=amount)

            order = RentalOrder(
                rental_start_date=as_date(start, "rental start date", cfg.tz),
                rental_end_date=as_date(end, "rental end date", cfg.tz),
                items=normalize_items(items_list),
                total_amount=totals.total_amount,
                base_amount=totals.total_amount,
                default_chargeable_days=totals.chargeable_days,
                discount_pct=float(discount_pct),
                tax_rate_pct=float(tax),
                deposit=deposit,
                client=client,
                notes=notes or "",
                created_at=now or business_now(cfg.tz),
            )
            created = st.create_order(order)
            logger.info("Order %s created: total=%.2f days=%d", created.id,
                        created.total_amount, created.default_chargeable_days)
            return created

        return guarded(_run)

    @staticmethod
    def apply_status_change(order: RentalOrder, requested_status: str, actual_date=None,
                            chargeable_days_override: Optional[int] = None,
                            deduction_amount=0.0, deduction_reason: str = "", deposit_notes: str = "",
                            store: Optional[OrderStore] = None, config: Optional[EngineConfig] = None,
                            now: Optional[datetime] = None) -> Result:
        """
        validate transition -> usage -> pricing -> deposit settlement -> commit.

        ``order`` is the snapshot the caller read; its version is what the
        commit is checked against. Entering an active state records the
        pickup date only. ``completed`` reprices from the original amount
        (``base_amount``) and settles a collected deposit with the given
        deduction. ``cancelled`` applies the cancellation fee.
        """
        st, cfg = _resolve(store, config)
        try:
            outcome = OrderService._status_change(
                order, requested_status, actual_date, chargeable_days_override,
                deduction_amount, deduction_reason, deposit_notes, st, cfg, now,
            )
        except OrderEngineError as e:
            logger.warning("Status change %s -> %s rejected for order %s: %s",
                           order.status, requested_status, order.id, e.message)
            return Result.failure(e)
        logger.info("Order %s: %s -> %s, total %.2f (v%d)", order.id, order.status,
                    requested_status, outcome.order.total_amount, outcome.order.version)
        return Result.success(outcome)

    @staticmethod
    def _status_change(order, requested_status, actual_date, override, deduction_amount,
                       deduction_reason, deposit_notes, st, cfg, now) -> ChangeOutcome:
        engine = StatusTransitionEngine(cfg.profile)
        profile = engine.profile
        engine.validate(order.status, requested_status)
        now = now or business_now(cfg.tz)

        usage = None
        pricing = None
        audit = None
        actual = optional_date(actual_date, "actual date", cfg.tz)

        if profile.is_date_bearing(requested_status):
            if actual is None:
                raise InvalidDateError(f"Error: actual date is required to move to '{requested_status}'")
            usage = compute_usage(order.rental_start_date, order.rental_end_date, actual,
                                  cfg.grace_days, tz=cfg.tz)

        if requested_status == profile.completed:
            if override is not None:
                days = _DayCounts.from_override(
                    require_int(override, "chargeable days override", minimum=0),
                    order.default_chargeable_days,
                )
            else:
                days = _DayCounts.from_usage(usage)
            pricing = compute_adjustment(
                order.base_amount, days.planned_days, days.actual_days,
                days.is_early_return, days.is_late_return, days.extra_days, config=cfg,
            )
            audit = UsageCalculation(
                planned_days=days.planned_days,
                actual_days=days.actual_days,
                is_early_return=days.is_early_return,
                is_late_return=days.is_late_return,
                is_within_grace=days.is_within_grace,
                extra_days=days.extra_days,
                daily_rate=pricing.daily_rate,
                adjusted_amount=pricing.adjusted_amount,
                refund_amount=pricing.refund_amount,
                penalty_amount=pricing.penalty_amount,
                adjustment_reason=pricing.adjustment_reason,
                manual_override=days.manual_override,
            )
        elif requested_status == profile.cancelled:
            pricing = compute_cancellation(order.base_amount, config=cfg)

        deposit = order.deposit
        if requested_status == profile.completed and deposit is not None:
            if deposit.status == DepositStatus.COLLECTED:
                deposit = DepositLedger(profile).settle(
                    deposit, requested_status, now,
                    deduction_amount=deduction_amount,
                    deduction_reason=deduction_reason,
                    notes=deposit_notes,
                )
            else:
                logger.warning("Order %s completed with deposit still '%s'; not settled",
                               order.id, deposit.status)

        new_total = pricing.adjusted_amount if pricing else order.total_amount
        updated = _with_history(order, StatusChange(
            from_status=order.status,
            to_status=requested_status,
            actual_date=actual,
            changed_at=now,
            amount_before=order.total_amount,
            amount_after=new_total,
            reason=pricing.adjustment_reason if pricing else "",
            usage=audit,
        ))
        updated.status = requested_status
        updated.total_amount = new_total
        updated.deposit = deposit

        committed = st.commit_order(updated, expected_version=order.version)
        return ChangeOutcome(order=committed, usage=usage, pricing=pricing, deposit=committed.deposit)

    @staticmethod
    def collect_deposit(order: RentalOrder, amount=None, store: Optional[OrderStore] = None,
                        config: Optional[EngineConfig] = None, now: Optional[datetime] = None) -> Result:
        """Collect the order's pending deposit (order must be active)."""
        st, cfg = _resolve(store, config)

        def _run():
            deposit = order.deposit or DepositRecord()
            if order.deposit is None and amount is None:
                raise InvalidAmountError("Error: order has no deposit; an amount is required")
            collected = DepositLedger(cfg.profile).collect(
                deposit, order.status, now or business_now(cfg.tz), amount=amount,
            )
            updated = copy.deepcopy(order)
            updated.deposit = collected
            committed = st.commit_order(updated, expected_version=order.version)
            logger.info("Order %s: deposit %.2f collected", order.id, collected.amount)
            return ChangeOutcome(order=committed, deposit=committed.deposit)

        return guarded(_run)

    @staticmethod
    def settle_deposit(order: RentalOrder, deduction_amount=0.0, deduction_reason: str = "",
                       notes: str = "", store: Optional[OrderStore] = None,
                       config: Optional[EngineConfig] = None, now: Optional[datetime] = None) -> Result:
        """Refund or forfeit the deposit of a completed order."""
        st, cfg = _resolve(store, config)

        def _run():
            if order.deposit is None:
                raise InvalidStateError("Error: order has no deposit to settle")
            settled = DepositLedger(cfg.profile).settle(
                order.deposit, order.status, now or business_now(cfg.tz),
                deduction_amount=deduction_amount,
                deduction_reason=deduction_reason,
                notes=notes,
            )
            updated = copy.deepcopy(order)
            updated.deposit = settled
            committed = st.commit_order(updated, expected_version=order.version)
            logger.info("Order %s: deposit %s, refund %.2f", order.id, settled.status,
                        settled.refund_amount)
            return ChangeOutcome(order=committed, deposit=committed.deposit)

        return guarded(_run)

    @staticmethod
    def update_payment(order: RentalOrder, amount_paid, store: Optional[OrderStore] = None) -> Result:
        """Set the total paid so far; payment status follows from it."""
        st = store or common._store()

        def _run():
            updated = replace(order, amount_paid=round_money(require_number(amount_paid, "amount paid")))
            committed = st.commit_order(updated, expected_version=order.version)
            logger.info("Order %s: paid %.2f of %.2f", order.id, committed.amount_paid,
                        committed.total_amount)
            return committed

        return guarded(_run)
