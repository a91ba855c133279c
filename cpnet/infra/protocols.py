"""Collaborator protocols consumed by the lifecycle engine.

Ledger code depends on these abstractions; adapters implement them.
All operations return Ok[T] | Err[...]: store failures and version
conflicts are values in the type system, never invisible exceptions.

The Ledger Store is a versioned key-value store. Version 0 means "never
written"; every write, including a delete (tombstone), bumps the version.
A LedgerTransaction records the version of every key it reads and buffers
its writes; commit() applies all writes only if no recorded version moved.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, final, runtime_checkable

from cpnet.core.errors import AuthorizationError, PersistenceError, VersionConflictError
from cpnet.core.party import CallerIdentity
from cpnet.core.result import Err, Ok
from cpnet.core.types import UtcDatetime


@final
@dataclass(frozen=True, slots=True)
class VersionedRecord:
    """One version of one entity. record is None for a tombstone."""

    entity_id: str
    version: int
    record: object | None
    written_at: UtcDatetime
    tx_id: str


@runtime_checkable
class LedgerTransaction(Protocol):
    """Transaction boundary over the Ledger Store.

    Invariants:
      - get() sees the transaction's own buffered writes.
      - Nothing is visible to other readers before commit().
      - commit() is all-or-nothing; rollback() discards the buffer.
    """

    @property
    def tx_id(self) -> str: ...

    def get(self, entity_id: str) -> Ok[VersionedRecord] | Err[PersistenceError]: ...

    def put(self, entity_id: str, record: object) -> Ok[None] | Err[PersistenceError]: ...

    def delete(self, entity_id: str) -> Ok[None] | Err[PersistenceError]: ...

    def keys(self, prefix: str) -> Ok[tuple[str, ...]] | Err[PersistenceError]: ...

    def commit(self) -> Ok[int] | Err[VersionConflictError | PersistenceError]: ...

    def rollback(self) -> None: ...


@runtime_checkable
class LedgerStore(Protocol):
    """Durable, versioned record store keyed by entity identifier."""

    def get(self, entity_id: str) -> Ok[VersionedRecord] | Err[PersistenceError]: ...

    def put(
        self, entity_id: str, record: object, expected_version: int,
    ) -> Ok[VersionedRecord] | Err[VersionConflictError | PersistenceError]: ...

    def begin(self, timeout_s: float | None = None) -> LedgerTransaction: ...

    def history(
        self, entity_id: str,
    ) -> Ok[tuple[VersionedRecord, ...]] | Err[PersistenceError]: ...

    def keys(self, prefix: str) -> Ok[tuple[str, ...]] | Err[PersistenceError]: ...


@runtime_checkable
class IdentityResolver(Protocol):
    """Resolves the participant on whose behalf the current call runs."""

    def resolve_caller(self) -> Ok[CallerIdentity] | Err[AuthorizationError]: ...


@runtime_checkable
class EventBus(Protocol):
    """Append-only event transport. Values are opaque bytes."""

    def publish(
        self, topic: str, key: str, value: bytes,
    ) -> Ok[None] | Err[PersistenceError]: ...
