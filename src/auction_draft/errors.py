"""Error taxonomy for the auction draft engine.

Callers need to tell apart three outcomes:

- an input record was malformed (:class:`ValidationError`),
- an operation was rejected and nothing changed (:class:`UnknownEntityError`,
  :class:`DraftRuleError`),
- an operation degraded to a partial answer (:class:`InfeasibleConstraintError`,
  which the optimiser normally reports as shortfalls instead of raising).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from auction_draft.optimizer import Shortfall


class ValidationError(ValueError):
    """A player or patch record has missing or out-of-range fields."""


class UnknownEntityError(LookupError):
    """An operation referenced a team, player or draft event that isn't registered."""


class DraftRuleError(ValueError):
    """A draft would break a budget or roster rule. State is left unchanged."""


class InfeasibleConstraintError(ValueError):
    """One or more required roster slots cannot be filled."""

    def __init__(self, message: str, shortfalls: Sequence["Shortfall"] = ()) -> None:
        super().__init__(message)
        self.shortfalls = tuple(shortfalls)
