"""Shared service helpers: store accessor, money rounding, input guards, typed results."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from rentflow.exceptions import InvalidAmountError, OrderEngineError
from rentflow.models.store import OrderStore


def _store() -> OrderStore:
    """Get the singleton store instance."""
    return OrderStore.instance()


# -------- math helpers --------
def round_money(x: float) -> float:
    """
    Round to 2 decimal places, halves away from zero (2.675 -> 2.68, -2.675 -> -2.68).

    Goes through the decimal repr of the float so that values such as
    1.005 are treated as written rather than as their binary approximation.
    """
    return float(Decimal(repr(float(x))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def require_number(value, field: str, minimum: float = 0.0) -> float:
    """Return value as float, or raise InvalidAmountError if missing, non-numeric, NaN or below minimum."""
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"Error: {field} must be a number")
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise InvalidAmountError(f"Error: {field} must be a number") from None
    if math.isnan(num) or math.isinf(num):
        raise InvalidAmountError(f"Error: {field} must be a finite number")
    if num < minimum:
        raise InvalidAmountError(f"Error: {field} must be >= {minimum:g}")
    return num


def require_int(value, field: str, minimum: int = 0) -> int:
    """Return value as int, or raise InvalidAmountError for fractions, non-numbers or values below minimum."""
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(f"Error: {field} must be a whole number")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidAmountError(f"Error: {field} must be a whole number")
        value = int(value)
    try:
        num = int(value)
    except (TypeError, ValueError):
        raise InvalidAmountError(f"Error: {field} must be a whole number") from None
    if num < minimum:
        raise InvalidAmountError(f"Error: {field} must be >= {minimum}")
    return num


# -------- boundary results --------
@dataclass(frozen=True)
class Result:
    """
    Outcome of a public engine operation.

    ``ok`` is True with ``value`` set, or False with ``error`` holding the
    OrderEngineError that stopped the operation.
    """
    ok: bool
    value: Any = None
    error: Optional[OrderEngineError] = None

    @property
    def kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str:
        return self.error.message if self.error else "OK"

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: OrderEngineError) -> "Result":
        return cls(ok=False, error=error)


def guarded(fn, *args, **kwargs) -> Result:
    """Run fn and wrap its return value or OrderEngineError into a Result."""
    try:
        return Result.success(fn(*args, **kwargs))
    except OrderEngineError as e:
        return Result.failure(e)
