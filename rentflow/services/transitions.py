"""Order status state machine, parameterized by a named status profile."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from rentflow.exceptions import InvalidTransitionError
from rentflow.utils.constants import OrderStatus as S, PROFILE_BASIC, PROFILE_FULL


@dataclass(frozen=True)
class StatusProfile:
    """
    One status graph.

    ``active`` are the states in which the customer holds the items (a
    deposit can be collected, usage is measured from the actual date);
    ``completed`` is the terminal state that settles the deposit.
    """
    name: str
    transitions: dict
    active: frozenset
    completed: str = S.COMPLETED
    cancelled: str = S.CANCELLED

    @property
    def statuses(self) -> tuple:
        return tuple(self.transitions)

    @property
    def terminal(self) -> frozenset:
        return frozenset(s for s, nxt in self.transitions.items() if not nxt)

    def is_active(self, status: str) -> bool:
        return status in self.active

    def is_terminal(self, status: str) -> bool:
        return status in self.terminal

    def is_date_bearing(self, status: str) -> bool:
        """Entering this status needs an actual date (pickup or return)."""
        return status in self.active or status == self.completed

    def allowed_from(self, status: str) -> frozenset:
        return self.transitions.get(status, frozenset())


FULL_PROFILE = StatusProfile(
    name=PROFILE_FULL,
    transitions={
        S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),
        S.CONFIRMED: frozenset({S.OUT_FOR_DELIVERY, S.CANCELLED}),
        S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED, S.CANCELLED}),
        S.DELIVERED: frozenset({S.IN_USE, S.RETURN_SCHEDULED, S.COMPLETED, S.CANCELLED}),
        S.IN_USE: frozenset({S.RETURN_SCHEDULED, S.COMPLETED, S.CANCELLED}),
        S.RETURN_SCHEDULED: frozenset({S.COMPLETED, S.CANCELLED}),
        S.COMPLETED: frozenset(),
        S.CANCELLED: frozenset(),
    },
    active=frozenset({S.DELIVERED, S.IN_USE, S.RETURN_SCHEDULED}),
)

BASIC_PROFILE = StatusProfile(
    name=PROFILE_BASIC,
    transitions={
        S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),
        S.CONFIRMED: frozenset({S.IN_PROGRESS, S.CANCELLED}),
        S.IN_PROGRESS: frozenset({S.COMPLETED, S.CANCELLED}),
        S.COMPLETED: frozenset(),
        S.CANCELLED: frozenset(),
    },
    active=frozenset({S.IN_PROGRESS}),
)

PROFILES = {p.name: p for p in (FULL_PROFILE, BASIC_PROFILE)}


def get_profile(profile: str | StatusProfile | None = None) -> StatusProfile:
    """Resolve a profile object or name; None means the configured profile."""
    if isinstance(profile, StatusProfile):
        return profile
    if profile is None:
        from rentflow.config import current_config
        profile = current_config().profile
    try:
        return PROFILES[profile]
    except KeyError:
        raise ValueError(f"Unknown status profile: {profile!r}") from None


class StatusTransitionEngine:
    """Validates proposed status changes against a profile's transition table. Pure."""

    def __init__(self, profile: str | StatusProfile | None = None):
        self.profile = get_profile(profile)

    def check(self, current: str, requested: str) -> Optional[str]:
        """Return None when the transition is legal, else the reason it is not."""
        p = self.profile
        if not isinstance(current, str):
            return f"Current status must be a status name, got {current!r}"
        if not isinstance(requested, str):
            return f"Requested status must be a status name, got {requested!r}"
        if current not in p.transitions:
            return f"Unknown current status '{current}' for profile '{p.name}'"
        if requested not in p.transitions:
            return f"Unknown status '{requested}' for profile '{p.name}'"
        if requested == current:
            return f"Order is already '{current}'"
        if p.is_terminal(current):
            return f"Order is '{current}' and can no longer change status"
        if requested not in p.allowed_from(current):
            allowed = ", ".join(sorted(p.allowed_from(current)))
            return f"Cannot move from '{current}' to '{requested}' (allowed: {allowed})"
        return None

    def validate(self, current: str, requested: str) -> None:
        """Raise InvalidTransitionError unless ``current -> requested`` is in the table."""
        reason = self.check(current, requested)
        if reason is not None:
            raise InvalidTransitionError(f"Error: {reason}")
