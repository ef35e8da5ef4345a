"""
Pricing engine.

Two jobs:
  - order totals from item lines (creation/edit time);
  - return adjustments: early-return refund with a minimum charge, late-return
    penalty at a multiple of the daily rate, cancellation fee.

Money stays unrounded through the arithmetic and is rounded once, on output.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable, Optional

from rentflow.config import EngineConfig, current_config
from rentflow.exceptions import InvalidAmountError, InvalidDateError, OrderEngineError
from rentflow.models.order import OrderItem
from rentflow.services.common import require_int, require_number, round_money
from rentflow.services.usage import inclusive_days
from rentflow.utils.dates import as_date

ON_TIME_REASON = "On-time return (within grace period)"


@dataclass(frozen=True)
class PricingResult:
    original_amount: float
    daily_rate: float
    adjusted_amount: float
    refund_amount: float
    penalty_amount: float
    adjustment_reason: str
    min_charge_applied: bool = False

    @property
    def adjustment_needed(self) -> bool:
        return self.adjusted_amount != self.original_amount

    @property
    def adjustment_amount(self) -> float:
        return round_money(self.adjusted_amount - self.original_amount)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["adjustment_needed"] = self.adjustment_needed
        d["adjustment_amount"] = self.adjustment_amount
        return d


@dataclass(frozen=True)
class OrderTotals:
    subtotal: float
    discount_amount: float
    tax_amount: float
    total_amount: float
    chargeable_days: int

    def to_dict(self) -> dict:
        return asdict(self)


# ------------------------- return adjustments -------------------------
def compute_adjustment(
        original_amount: float,
        planned_days: int,
        actual_days: int,
        is_early_return: bool,
        is_late_return: bool,
        extra_days: int = 0,
        config: Optional[EngineConfig] = None,
) -> PricingResult:
    """
    Adjust ``original_amount`` for an early or late return.

    At most one branch applies:
      - early: charge the used days at the daily rate, but never less than
        ``min_charge_ratio`` of the original; the rest is refunded;
      - late: add ``extra_days`` at ``late_penalty_multiplier`` x daily rate;
      - otherwise the amount is unchanged.
    """
    cfg = config or current_config()
    original = require_number(original_amount, "original amount")
    planned = require_int(planned_days, "planned days", minimum=0)
    actual = require_int(actual_days, "actual days", minimum=0)
    extra = require_int(extra_days, "extra days", minimum=0)
    for name, flag in (("is_early_return", is_early_return), ("is_late_return", is_late_return)):
        if not isinstance(flag, bool):
            raise InvalidDateError(f"Error: {name} must be true or false, got {flag!r}")
    if is_early_return and is_late_return:
        raise InvalidDateError("Error: a return cannot be both early and late")

    daily_rate = original / planned if planned > 0 else 0.0

    if is_early_return:
        if actual > planned:
            raise InvalidDateError(
                f"Error: an early return cannot use more days ({actual}) than planned ({planned})"
            )
        cost_for_used_days = daily_rate * actual
        min_charge = original * cfg.min_charge_ratio
        if cost_for_used_days >= min_charge:
            adjusted = cost_for_used_days
            reason = f"Early return - adjusted for {actual} actual day(s) used"
            min_applied = False
        else:
            adjusted = min_charge
            reason = f"Early return - minimum {cfg.min_charge_ratio * 100:g}% charge applied"
            min_applied = True
        return PricingResult(
            original_amount=round_money(original),
            daily_rate=round_money(daily_rate),
            adjusted_amount=round_money(adjusted),
            refund_amount=round_money(original - adjusted),
            penalty_amount=0.0,
            adjustment_reason=reason,
            min_charge_applied=min_applied,
        )

    if is_late_return:
        penalty_rate = daily_rate * cfg.late_penalty_multiplier
        penalty = extra * penalty_rate
        return PricingResult(
            original_amount=round_money(original),
            daily_rate=round_money(daily_rate),
            adjusted_amount=round_money(original + penalty),
            refund_amount=0.0,
            penalty_amount=round_money(penalty),
            adjustment_reason=f"Late return - {extra} day(s) penalty applied",
        )

    return PricingResult(
        original_amount=round_money(original),
        daily_rate=round_money(daily_rate),
        adjusted_amount=round_money(original),
        refund_amount=0.0,
        penalty_amount=0.0,
        adjustment_reason=ON_TIME_REASON,
    )


def compute_cancellation(original_amount: float, config: Optional[EngineConfig] = None) -> PricingResult:
    """Keep ``cancellation_fee_pct`` of the original amount, refund the rest."""
    cfg = config or current_config()
    original = require_number(original_amount, "original amount")
    fee = original * cfg.cancellation_fee_pct / 100
    return PricingResult(
        original_amount=round_money(original),
        daily_rate=0.0,
        adjusted_amount=round_money(fee),
        refund_amount=round_money(original - fee),
        penalty_amount=0.0,
        adjustment_reason=f"Cancelled - {cfg.cancellation_fee_pct:g}% cancellation fee",
    )


def suggest_deposit_amount(total_amount: float, ratio: Optional[float] = None) -> float:
    """Suggested security deposit: a share of the order total (20% by default)."""
    total = require_number(total_amount, "total amount")
    if ratio is None:
        ratio = current_config().deposit_ratio
    ratio = require_number(ratio, "deposit ratio")
    return round_money(total * ratio)


# ------------------------- order totals -------------------------
def chargeable_days(start, end, minimum_days: int = 1, tz=None) -> int:
    """
    Billed days for a rental window, both endpoints included.

    A same-day rental is one day; 2024-01-01 -> 2024-01-03 is three.
    """
    d1 = as_date(start, "rental start date", tz)
    d2 = as_date(end, "rental end date", tz)
    if d2 < d1:
        raise InvalidDateError("Error: rental end date must not be before start date")
    minimum = require_int(minimum_days, "minimum days", minimum=1)
    return max(minimum, inclusive_days(d1, d2))


def _coerce_item(raw) -> OrderItem:
    if isinstance(raw, OrderItem):
        item = raw
    elif isinstance(raw, dict):
        item = OrderItem.from_dict(raw)
    else:
        raise InvalidAmountError(f"Error: unsupported order item {raw!r}")
    return OrderItem(
        product_id=item.product_id,
        quantity=require_int(item.quantity, "quantity", minimum=1),
        unit_price=require_number(item.unit_price, "unit price"),
        days_used=None if item.days_used is None else require_int(item.days_used, "days used", minimum=1),
    )


def normalize_items(items: Iterable) -> list[OrderItem]:
    return [_coerce_item(i) for i in (items or [])]


def compute_order_totals(
        items: Iterable,
        start,
        end,
        discount_pct: float = 0.0,
        tax_rate_pct: Optional[float] = None,
        chargeable_days_override: Optional[int] = None,
        config: Optional[EngineConfig] = None,
) -> OrderTotals:
    """
    subtotal = sum(quantity * unit_price * days), where days is the item's own
    ``days_used`` or the order's chargeable days; discount comes off the
    subtotal and tax is charged on what remains.
    """
    cfg = config or current_config()
    if tax_rate_pct is None:
        tax_rate_pct = cfg.tax_rate_pct
    lines = normalize_items(items)
    discount = require_number(discount_pct, "discount percentage")
    if discount > 100:
        raise InvalidAmountError("Error: discount percentage must be <= 100")
    tax_rate = require_number(tax_rate_pct, "tax rate")

    days = chargeable_days(start, end, tz=cfg.tz)
    if chargeable_days_override is not None:
        days = require_int(chargeable_days_override, "chargeable days", minimum=1)

    subtotal = sum(
        item.quantity * item.unit_price * (item.days_used or days)
        for item in lines
    )
    discount_amount = subtotal * discount / 100
    tax_amount = (subtotal - discount_amount) * tax_rate / 100
    total = subtotal - discount_amount + tax_amount

    return OrderTotals(
        subtotal=round_money(subtotal),
        discount_amount=round_money(discount_amount),
        tax_amount=round_money(tax_amount),
        total_amount=round_money(total),
        chargeable_days=days,
    )


def validate_order_data(items, start, end, tz=None) -> list[OrderEngineError]:
    """
    Collect every problem with a new order's data instead of stopping at the
    first, so a form can show them all at once. Empty list means valid.
    """
    errors: list[OrderEngineError] = []
    parsed = {}
    for label, value in (("start", start), ("end", end)):
        try:
            parsed[label] = as_date(value, f"rental {label} date", tz)
        except InvalidDateError as e:
            errors.append(e)
    if len(parsed) == 2 and parsed["end"] < parsed["start"]:
        errors.append(InvalidDateError("Error: rental end date must not be before start date"))

    items = list(items or [])
    if not items:
        errors.append(InvalidAmountError("Error: at least one item is required"))
    for idx, raw in enumerate(items, start=1):
        if isinstance(raw, OrderItem):
            product = raw.product_id
        elif isinstance(raw, dict):
            product = raw.get("product_id") or raw.get("productId")
        else:
            product = None
        if not product:
            errors.append(InvalidAmountError(f"Error: item {idx}: product ID is required"))
        try:
            _coerce_item(raw)
        except InvalidAmountError as e:
            errors.append(InvalidAmountError(f"Error: item {idx}: {e.message.removeprefix('Error: ')}"))
    return errors
