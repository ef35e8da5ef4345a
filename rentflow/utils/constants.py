# rentflow/utils/constants.py

"""
Global constants for order statuses, deposit statuses and payment states.
These constants are imported by both models and services.
"""


class OrderStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    IN_USE = "in_use"
    IN_PROGRESS = "in_progress"
    RETURN_SCHEDULED = "return_scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DepositStatus:
    PENDING = "pending"
    COLLECTED = "collected"
    REFUNDED = "refunded"
    FORFEITED = "forfeited"


class PaymentStatus:
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


# --- Profiles ---
PROFILE_FULL = "full"
PROFILE_BASIC = "basic"

# Deposit states that can no longer change
SETTLED_DEPOSIT_STATES = {DepositStatus.REFUNDED, DepositStatus.FORFEITED}
