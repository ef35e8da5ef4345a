"""Deposit ledger: pending -> collected -> refunded | forfeited."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from rentflow.exceptions import InvalidStateError
from rentflow.models.deposit import DepositRecord
from rentflow.services.common import require_number, round_money
from rentflow.services.transitions import StatusProfile, get_profile
from rentflow.utils.constants import DepositStatus

logger = logging.getLogger(__name__)


class DepositLedger:
    """
    The only place a DepositRecord changes status.

    Both operations take the owning order's status so the ledger can check
    it against the profile, and return a new record; the input is never
    modified.
    """

    def __init__(self, profile: str | StatusProfile | None = None):
        self.profile = get_profile(profile)

    def collect(
            self,
            deposit: DepositRecord,
            order_status: str,
            now: datetime,
            amount: Optional[float] = None,
    ) -> DepositRecord:
        """
        Mark a pending deposit as collected.

        Only while the order is in an active state (items with the customer).
        ``amount`` replaces the recorded amount when given.
        """
        if deposit.status != DepositStatus.PENDING:
            raise InvalidStateError(
                f"Error: deposit is '{deposit.status}', only a pending deposit can be collected"
            )
        if not self.profile.is_active(order_status):
            raise InvalidStateError(
                f"Error: deposit can only be collected while the order is active "
                f"({', '.join(sorted(self.profile.active))}); order is '{order_status}'"
            )
        value = deposit.amount if amount is None else amount
        value = round_money(require_number(value, "deposit amount"))
        return replace(
            deposit,
            amount=value,
            status=DepositStatus.COLLECTED,
            collected_at=now,
        )

    def settle(
            self,
            deposit: DepositRecord,
            order_status: str,
            now: datetime,
            deduction_amount: float = 0.0,
            deduction_reason: str = "",
            notes: str = "",
    ) -> DepositRecord:
        """
        Refund or forfeit a collected deposit once the order is completed.

        refund = amount - deduction. Positive -> refunded. Zero or negative ->
        forfeited, with the reported refund held at 0 while the full
        deduction stays on record.
        """
        if deposit.status != DepositStatus.COLLECTED:
            raise InvalidStateError(
                f"Error: deposit is '{deposit.status}', only a collected deposit can be settled"
            )
        if order_status != self.profile.completed:
            raise InvalidStateError(
                f"Error: deposit can only be settled once the order is "
                f"'{self.profile.completed}'; order is '{order_status}'"
            )
        deduction = require_number(deduction_amount, "deduction amount")
        raw_refund = deposit.amount - deduction

        if raw_refund > 0:
            status = DepositStatus.REFUNDED
            refund = round_money(raw_refund)
        else:
            status = DepositStatus.FORFEITED
            refund = 0.0
            if raw_refund < 0:
                logger.warning(
                    "Deduction %.2f exceeds deposit %.2f; reporting refund as 0",
                    deduction, deposit.amount,
                )

        return replace(
            deposit,
            status=status,
            refunded_at=now,
            deduction_amount=deduction,
            deduction_reason=deduction_reason or "",
            notes=notes or "",
            refund_amount=refund,
        )
