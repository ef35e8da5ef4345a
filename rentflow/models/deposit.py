from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from rentflow.utils.constants import DepositStatus, SETTLED_DEPOSIT_STATES
from rentflow.utils.dates import fmt_timestamp


@dataclass(frozen=True)
class DepositRecord:
    """
    Security deposit attached to a rental order.

    Frozen: every lifecycle step (collect, settle) produces a new record
    through the deposit ledger, so status and timestamps cannot be edited
    in place. ``deduction_amount`` keeps the raw figure even when it
    exceeds ``amount``; ``refund_amount`` is what the customer gets back
    and never goes below zero.
    """
    amount: float = 0.0
    status: str = DepositStatus.PENDING
    collected_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    deduction_amount: float = 0.0
    deduction_reason: str = ""
    notes: str = ""
    refund_amount: Optional[float] = None

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_DEPOSIT_STATES

    def to_dict(self) -> dict:
        return {
            "amount": self.amount,
            "status": self.status,
            "collected_at": fmt_timestamp(self.collected_at),
            "refunded_at": fmt_timestamp(self.refunded_at),
            "deduction_amount": self.deduction_amount,
            "deduction_reason": self.deduction_reason,
            "notes": self.notes,
            "refund_amount": self.refund_amount,
        }

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> Optional["DepositRecord"]:
        if not d:
            return None

        def _ts(v):
            return datetime.fromisoformat(v) if v else None

        return cls(
            amount=float(d.get("amount") or 0.0),
            status=d.get("status") or DepositStatus.PENDING,
            collected_at=_ts(d.get("collected_at")),
            refunded_at=_ts(d.get("refunded_at")),
            deduction_amount=float(d.get("deduction_amount") or 0.0),
            deduction_reason=d.get("deduction_reason") or "",
            notes=d.get("notes") or "",
            refund_amount=d.get("refund_amount"),
        )
