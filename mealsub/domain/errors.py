"""
Outcome type for ledger and state-machine operations.

Business-rule violations (limit reached, too close to delivery, wrong status)
are expected outcomes the caller branches on, so operations return a Result
instead of raising. Only unexpected failures (bad stored data, I/O) raise.
"""
from dataclasses import dataclass
from typing import Any


# Error kinds
ERR_INVALID_RANGE = "INVALID_RANGE"
ERR_ALREADY_PAUSED = "ALREADY_PAUSED"
ERR_NOT_PAUSED = "NOT_PAUSED"
ERR_LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
ERR_MONTHLY_LIMIT_EXCEEDED = "MONTHLY_LIMIT_EXCEEDED"
ERR_WITHIN_CUTOFF = "WITHIN_CUTOFF"
ERR_NOT_ACTIVE = "NOT_ACTIVE"
ERR_ALREADY_CANCELLED = "ALREADY_CANCELLED"
ERR_NOT_FOUND = "NOT_FOUND"
ERR_INVALID_DELIVERY_DAYS = "INVALID_DELIVERY_DAYS"

# Status-precondition kinds (HTTP 409 rather than 400)
STATE_ERRORS = frozenset({
    ERR_ALREADY_PAUSED,
    ERR_NOT_PAUSED,
    ERR_NOT_ACTIVE,
    ERR_ALREADY_CANCELLED,
})


@dataclass(frozen=True)
class LedgerError:
    kind: str
    message: str
    remaining: int | None = None  # allowance left, for quota errors


@dataclass(frozen=True)
class Result:
    """
    Success value or LedgerError.

    Usage:
        result = ledger.open_pause(start, end, now)
        if not result.ok:
            show(result.error.message)
    """
    value: Any = None
    error: LedgerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: str, message: str, remaining: int | None = None) -> "Result":
        return cls(error=LedgerError(kind=kind, message=message, remaining=remaining))
