"""Business outcomes of the contract/order engine.

Eligibility failures are expected results that callers render as messages, so
engine operations return them inside an :class:`Outcome` instead of raising.
Storage failures are not modelled here; they propagate after rollback.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class EngineError(Exception):
    code = "ENGINE_ERROR"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NotFound(EngineError):
    code = "NOT_FOUND"


class AlreadyAccepted(EngineError):
    code = "ALREADY_ACCEPTED"


class NotEligible(EngineError):
    code = "NOT_ELIGIBLE"


class QuotaExceeded(NotEligible):
    """No free attempts or cancellations remain (a specific kind of NotEligible)."""

    code = "QUOTA_EXCEEDED"


class ValidationError(EngineError):
    code = "VALIDATION_ERROR"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[EngineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: EngineError) -> "Outcome[T]":
        return cls(error=error)


@dataclass(frozen=True)
class Eligibility:
    allowed: bool
    reason: Optional[str] = None
    error: Optional[EngineError] = None
    # True when the free-attempt path (not an acceptance) made the order eligible.
    uses_free_attempt: bool = False

    @classmethod
    def allow(cls, *, uses_free_attempt: bool = False) -> "Eligibility":
        return cls(allowed=True, uses_free_attempt=uses_free_attempt)

    @classmethod
    def deny(cls, error: EngineError) -> "Eligibility":
        return cls(allowed=False, reason=error.reason, error=error)
