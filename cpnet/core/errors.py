"""Error value hierarchy -- no ledger function raises exceptions.

Every error is a frozen dataclass value that can be pattern-matched,
serialized into an event or log line, and compared in tests.
Base class CpnetError, @final subclasses per failure family.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import final

from cpnet.core.types import UtcDatetime


@dataclass(frozen=True, slots=True)
class CpnetError:
    """Base error value. NOT @final -- has subclasses."""

    message: str
    code: str
    timestamp: UtcDatetime
    source: str  # "module.function" that produced this error

    def with_context(self, context: str) -> CpnetError:
        """Return a copy with context prepended to message."""
        return replace(self, message=f"{context}: {self.message}")

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "code": self.code,
            "timestamp": self.timestamp.value.isoformat(),
            "source": self.source,
        }


@final
@dataclass(frozen=True, slots=True)
class FieldViolation:
    """Describes a single field validation failure."""

    path: str  # e.g. "par"
    constraint: str  # e.g. "must be > 0"
    actual_value: str


@final
@dataclass(frozen=True, slots=True)
class ValidationError(CpnetError):
    """Malformed or out-of-range input. Rejected before any state change."""

    fields: tuple[FieldViolation, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            **CpnetError.to_dict(self),
            "fields": [
                {"path": f.path, "constraint": f.constraint, "actual_value": f.actual_value}
                for f in self.fields
            ],
        }


@final
@dataclass(frozen=True, slots=True)
class AuthorizationError(CpnetError):
    """Caller may not act for the named company or account."""

    participant_id: str
    resource: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CpnetError.to_dict(self),
            "participant_id": self.participant_id,
            "resource": self.resource,
        }


class ConflictReason(Enum):
    """Why an operation is invalid given the current lifecycle state."""

    ALREADY_EXISTS = "AlreadyExists"
    UNKNOWN_ENTITY = "UnknownEntity"
    ALREADY_LISTED = "AlreadyListed"
    NOT_LISTED = "NotListed"
    LISTING_NOT_FOUND = "ListingNotFound"
    NOT_MATURED = "NotMatured"
    PAPER_MATURED = "PaperMatured"
    ALREADY_REDEEMED = "AlreadyRedeemed"
    MATURITY_EXCEEDS_MARKET_LIMIT = "MaturityExceedsMarketLimit"
    ILLEGAL_TRANSITION = "IllegalTransition"


@final
@dataclass(frozen=True, slots=True)
class StateConflictError(CpnetError):
    """Operation conflicts with the entity's current state."""

    entity_id: str
    reason: ConflictReason

    def to_dict(self) -> dict[str, object]:
        return {
            **CpnetError.to_dict(self),
            "entity_id": self.entity_id,
            "reason": self.reason.value,
        }


@final
@dataclass(frozen=True, slots=True)
class InsufficientFundsError(CpnetError):
    """Debit larger than the account's cash balance."""

    account_id: str
    requested: str
    available: str

    def to_dict(self) -> dict[str, object]:
        return {
            **CpnetError.to_dict(self),
            "account_id": self.account_id,
            "requested": self.requested,
            "available": self.available,
        }


@final
@dataclass(frozen=True, slots=True)
class CurrencyMismatchError(CpnetError):
    """Two amounts or accounts in one operation carry different currencies."""

    expected: str
    actual: str

    def to_dict(self) -> dict[str, object]:
        return {**CpnetError.to_dict(self), "expected": self.expected, "actual": self.actual}


@final
@dataclass(frozen=True, slots=True)
class ConcurrentModificationError(CpnetError):
    """Write conflicts persisted through every retry attempt."""

    attempts: int

    def to_dict(self) -> dict[str, object]:
        return {**CpnetError.to_dict(self), "attempts": self.attempts}


@final
@dataclass(frozen=True, slots=True)
class VersionConflictError(CpnetError):
    """Store-level compare-and-swap failure. Retryable."""

    entity_id: str
    expected_version: int
    actual_version: int

    def to_dict(self) -> dict[str, object]:
        return {
            **CpnetError.to_dict(self),
            "entity_id": self.entity_id,
            "expected_version": self.expected_version,
            "actual_version": self.actual_version,
        }


@final
@dataclass(frozen=True, slots=True)
class PersistenceError(CpnetError):
    """Ledger store operation failed."""

    operation: str

    def to_dict(self) -> dict[str, object]:
        return {**CpnetError.to_dict(self), "operation": self.operation}


type TradingError = (
    ValidationError
    | AuthorizationError
    | StateConflictError
    | InsufficientFundsError
    | CurrencyMismatchError
    | ConcurrentModificationError
    | PersistenceError
)


def conflict(
    entity_id: str, reason: ConflictReason, message: str, source: str,
) -> StateConflictError:
    """Shorthand used by the registry and market book."""
    return StateConflictError(
        message=message,
        code=reason.name,
        timestamp=UtcDatetime.now(),
        source=source,
        entity_id=entity_id,
        reason=reason,
    )


def invalid(
    message: str, code: str, source: str, *fields: FieldViolation,
) -> ValidationError:
    return ValidationError(
        message=message,
        code=code,
        timestamp=UtcDatetime.now(),
        source=source,
        fields=tuple(fields),
    )
