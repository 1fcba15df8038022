"""Shared transition-table check for the build and release state machines."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import TypeVar

S = TypeVar("S", bound=Enum)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


def check_transition(
    table: Mapping[S, set[S]],
    subject: str,
    current: S,
    target: S,
) -> None:
    """Raise ``InvalidTransitionError`` unless ``current -> target`` is allowed."""
    allowed = table.get(current, set())
    if target not in allowed:
        raise InvalidTransitionError(
            f"Cannot transition {subject} from {current.value} to {target.value}. "
            f"Allowed: {sorted(s.value for s in allowed)}"
        )
