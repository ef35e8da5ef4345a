from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Optional

from .deposit import DepositRecord
from ..utils.constants import OrderStatus, PaymentStatus
from ..utils.dates import fmt_date, fmt_timestamp


@dataclass(frozen=True)
class OrderItem:
    """One rented line. ``days_used`` overrides the order's chargeable days for this line."""
    product_id: str
    quantity: int
    unit_price: float
    days_used: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "OrderItem":
        return cls(
            product_id=str(d.get("product_id") or d.get("productId") or ""),
            quantity=d.get("quantity"),
            unit_price=d.get("unit_price", d.get("unitPrice")),
            days_used=d.get("days_used", d.get("daysUsed")),
        )


@dataclass(frozen=True)
class UsageCalculation:
    """
    Audit record of one return adjustment: the day counts from
    the usage calculator joined with the money figures from the pricing engine.
    """
    planned_days: int
    actual_days: int
    is_early_return: bool
    is_late_return: bool
    is_within_grace: bool
    extra_days: int
    daily_rate: float
    adjusted_amount: float
    refund_amount: float
    penalty_amount: float
    adjustment_reason: str
    manual_override: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> Optional["UsageCalculation"]:
        if not d:
            return None
        return cls(**d)


@dataclass(frozen=True)
class StatusChange:
    """One committed status change, with the money effect it had."""
    from_status: str
    to_status: str
    actual_date: Optional[date] = None
    changed_at: Optional[datetime] = None
    amount_before: Optional[float] = None
    amount_after: Optional[float] = None
    reason: str = ""
    usage: Optional[UsageCalculation] = None

    def to_dict(self) -> dict:
        return {
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actual_date": fmt_date(self.actual_date),
            "changed_at": fmt_timestamp(self.changed_at),
            "amount_before": self.amount_before,
            "amount_after": self.amount_after,
            "reason": self.reason,
            "usage": self.usage.to_dict() if self.usage else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "StatusChange":
        return cls(
            from_status=d["from_status"],
            to_status=d["to_status"],
            actual_date=date.fromisoformat(d["actual_date"]) if d.get("actual_date") else None,
            changed_at=datetime.fromisoformat(d["changed_at"]) if d.get("changed_at") else None,
            amount_before=d.get("amount_before"),
            amount_after=d.get("amount_after"),
            reason=d.get("reason") or "",
            usage=UsageCalculation.from_dict(d.get("usage")),
        )


@dataclass
class RentalOrder:
    """
    Rental order as the engine sees it.

    ``base_amount`` is the price computed from the item lines at creation;
    ``total_amount`` is the currently committed figure, which only differs
    from ``base_amount`` after a return or cancellation adjustment.
    ``version`` is bumped by the store on every commit.
    """
    rental_start_date: date
    rental_end_date: date
    items: list[OrderItem] = field(default_factory=list)
    id: Optional[str] = None
    status: str = OrderStatus.PENDING
    total_amount: float = 0.0
    base_amount: float = 0.0
    default_chargeable_days: int = 1
    discount_pct: float = 0.0
    tax_rate_pct: float = 0.0
    deposit: Optional[DepositRecord] = None
    amount_paid: float = 0.0
    client: Optional[str] = None
    notes: str = ""
    history: list[StatusChange] = field(default_factory=list)
    version: int = 0
    created_at: Optional[datetime] = None

    # --------------- Payment view ---------------
    @property
    def remaining_amount(self) -> float:
        return round(self.total_amount - self.amount_paid, 2)

    @property
    def payment_status(self) -> str:
        if self.amount_paid <= 0:
            return PaymentStatus.PENDING
        if self.amount_paid >= self.total_amount:
            return PaymentStatus.PAID
        return PaymentStatus.PARTIALLY_PAID

    # --------------- Mapping ---------------
    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "rental_start_date": fmt_date(self.rental_start_date),
            "rental_end_date": fmt_date(self.rental_end_date),
            "items": [i.to_dict() for i in self.items],
            "total_amount": self.total_amount,
            "base_amount": self.base_amount,
            "default_chargeable_days": self.default_chargeable_days,
            "discount_pct": self.discount_pct,
            "tax_rate_pct": self.tax_rate_pct,
            "deposit": self.deposit.to_dict() if self.deposit else None,
            "amount_paid": self.amount_paid,
            "remaining_amount": self.remaining_amount,
            "payment_status": self.payment_status,
            "client": self.client,
            "notes": self.notes,
            "history": [h.to_dict() for h in self.history],
            "version": self.version,
            "created_at": fmt_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RentalOrder":
        return cls(
            id=d.get("id"),
            status=d.get("status") or OrderStatus.PENDING,
            rental_start_date=date.fromisoformat(d["rental_start_date"]),
            rental_end_date=date.fromisoformat(d["rental_end_date"]),
            items=[OrderItem.from_dict(i) for i in d.get("items") or []],
            total_amount=float(d.get("total_amount") or 0.0),
            base_amount=float(d.get("base_amount") or 0.0),
            default_chargeable_days=int(d.get("default_chargeable_days") or 1),
            discount_pct=float(d.get("discount_pct") or 0.0),
            tax_rate_pct=float(d.get("tax_rate_pct") or 0.0),
            deposit=DepositRecord.from_dict(d.get("deposit")),
            amount_paid=float(d.get("amount_paid") or 0.0),
            client=d.get("client"),
            notes=d.get("notes") or "",
            history=[StatusChange.from_dict(h) for h in d.get("history") or []],
            version=int(d.get("version") or 0),
            created_at=datetime.fromisoformat(d["created_at"]) if d.get("created_at") else None,
        )
