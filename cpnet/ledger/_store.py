"""Typed record access over a LedgerTransaction.

Collapses the get / not-found / isinstance pattern into one call so the
components read as business rules.
"""

from __future__ import annotations

from cpnet.core.errors import ConflictReason, PersistenceError, StateConflictError, conflict
from cpnet.core.result import Err, Ok
from cpnet.infra.protocols import LedgerTransaction


def load[T](
    tx: LedgerTransaction,
    key: str,
    record_type: type[T],
    source: str,
) -> Ok[T] | Err[StateConflictError | PersistenceError]:
    """Read key as record_type; a missing key is UNKNOWN_ENTITY."""
    match tx.get(key):
        case Err(e) if e.code == "NOT_FOUND":
            return Err(conflict(key, ConflictReason.UNKNOWN_ENTITY, f"Unknown entity: {key}", source))
        case Err() as err:
            return err
        case Ok(versioned):
            pass
    if not isinstance(versioned.record, record_type):
        return Err(PersistenceError(
            message=f"{key} holds {type(versioned.record).__name__}, expected {record_type.__name__}",
            code="RECORD_TYPE",
            timestamp=versioned.written_at,
            source=source,
            operation="load",
        ))
    return Ok(versioned.record)


def exists(tx: LedgerTransaction, key: str) -> Ok[bool] | Err[PersistenceError]:
    match tx.get(key):
        case Ok(_):
            return Ok(True)
        case Err(e) if e.code == "NOT_FOUND":
            return Ok(False)
        case Err() as err:
            return err
