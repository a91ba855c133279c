"""In-memory implementations of the Ledger Store and Event Bus.

They let the whole engine and test suite run without a ledger network.
The store keeps the full version history of every key and serialises
commits behind one lock, which gives the same compare-and-swap semantics
a real optimistic-concurrency ledger provides.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from enum import Enum
from typing import final

from cpnet.core.errors import PersistenceError, VersionConflictError
from cpnet.core.result import Err, Ok
from cpnet.core.types import UtcDatetime
from cpnet.infra.protocols import VersionedRecord

logger = logging.getLogger(__name__)

DEFAULT_TX_TIMEOUT_S = 30.0


def _persistence_error(operation: str, detail: str, code: str = "PERSISTENCE_ERROR") -> PersistenceError:
    return PersistenceError(
        message=detail,
        code=code,
        timestamp=UtcDatetime.now(),
        source=f"memory_adapter.{operation}",
        operation=operation,
    )


def _not_found(operation: str, entity_id: str) -> PersistenceError:
    return _persistence_error(operation, f"Record not found: {entity_id}", code="NOT_FOUND")


def _version_conflict(entity_id: str, expected: int, actual: int) -> VersionConflictError:
    return VersionConflictError(
        message=f"Version conflict on {entity_id}: expected {expected}, found {actual}",
        code="VERSION_CONFLICT",
        timestamp=UtcDatetime.now(),
        source="memory_adapter.commit",
        entity_id=entity_id,
        expected_version=expected,
        actual_version=actual,
    )


_DELETED = object()  # buffered-delete marker inside a transaction


class _TxState(Enum):
    OPEN = "Open"
    COMMITTED = "Committed"
    ROLLED_BACK = "RolledBack"


@final
class InMemoryLedgerStore:
    """Versioned key-value store with multi-key compare-and-swap commit."""

    def __init__(self, *, default_timeout_s: float = DEFAULT_TX_TIMEOUT_S) -> None:
        self._lock = threading.Lock()
        self._history: dict[str, list[VersionedRecord]] = {}
        self._tx_seq = itertools.count(1)
        self._commits = 0
        self._default_timeout_s = default_timeout_s

    # -- single-key access --

    def _latest(self, entity_id: str) -> VersionedRecord | None:
        versions = self._history.get(entity_id)
        return versions[-1] if versions else None

    def version_of(self, entity_id: str) -> int:
        """Current version of a key; 0 if never written."""
        with self._lock:
            latest = self._latest(entity_id)
            return latest.version if latest is not None else 0

    def get(self, entity_id: str) -> Ok[VersionedRecord] | Err[PersistenceError]:
        with self._lock:
            latest = self._latest(entity_id)
        if latest is None or latest.record is None:
            return Err(_not_found("get", entity_id))
        return Ok(latest)

    def put(
        self, entity_id: str, record: object, expected_version: int,
    ) -> Ok[VersionedRecord] | Err[VersionConflictError | PersistenceError]:
        """Single-key compare-and-swap write."""
        with self._lock:
            latest = self._latest(entity_id)
            actual = latest.version if latest is not None else 0
            if actual != expected_version:
                return Err(_version_conflict(entity_id, expected_version, actual))
            written = self._append(entity_id, record, f"PUT-{next(self._tx_seq)}")
        return Ok(written)

    def _append(self, entity_id: str, record: object | None, tx_id: str) -> VersionedRecord:
        latest = self._latest(entity_id)
        written = VersionedRecord(
            entity_id=entity_id,
            version=(latest.version if latest is not None else 0) + 1,
            record=record,
            written_at=UtcDatetime.now(),
            tx_id=tx_id,
        )
        self._history.setdefault(entity_id, []).append(written)
        return written

    # -- transactions --

    def begin(self, timeout_s: float | None = None) -> InMemoryLedgerTransaction:
        return InMemoryLedgerTransaction(
            store=self,
            tx_id=f"TX-{next(self._tx_seq)}",
            timeout_s=self._default_timeout_s if timeout_s is None else timeout_s,
        )

    def _commit(
        self,
        tx_id: str,
        reads: dict[str, int],
        writes: dict[str, object],
    ) -> Ok[int] | Err[VersionConflictError]:
        """Validate every observed version, then apply every write."""
        with self._lock:
            for entity_id, expected in reads.items():
                latest = self._latest(entity_id)
                actual = latest.version if latest is not None else 0
                if actual != expected:
                    return Err(_version_conflict(entity_id, expected, actual))
            for entity_id, record in writes.items():
                self._append(entity_id, None if record is _DELETED else record, tx_id)
            self._commits += 1
            seq = self._commits
        logger.debug("Committed %s: %d write(s)", tx_id, len(writes))
        return Ok(seq)

    # -- queries --

    def history(
        self, entity_id: str,
    ) -> Ok[tuple[VersionedRecord, ...]] | Err[PersistenceError]:
        with self._lock:
            versions = tuple(self._history.get(entity_id, ()))
        if not versions:
            return Err(_not_found("history", entity_id))
        return Ok(versions)

    def keys(self, prefix: str) -> Ok[tuple[str, ...]] | Err[PersistenceError]:
        """Live (non-tombstoned) keys starting with prefix, sorted."""
        with self._lock:
            live = tuple(sorted(
                k for k, versions in self._history.items()
                if k.startswith(prefix) and versions[-1].record is not None
            ))
        return Ok(live)

    def commit_count(self) -> int:
        """Test-only helper."""
        return self._commits


@final
class InMemoryLedgerTransaction:
    """Read-set / write-buffer transaction over InMemoryLedgerStore."""

    def __init__(self, *, store: InMemoryLedgerStore, tx_id: str, timeout_s: float) -> None:
        self._store = store
        self._tx_id = tx_id
        self._deadline = time.monotonic() + timeout_s
        self._reads: dict[str, int] = {}
        self._writes: dict[str, object] = {}
        self._state = _TxState.OPEN

    @property
    def tx_id(self) -> str:
        return self._tx_id

    def _closed(self, operation: str) -> Err[PersistenceError] | None:
        if self._state is _TxState.OPEN:
            return None
        return Err(_persistence_error(
            operation, f"Transaction {self._tx_id} is {self._state.value}", code="TX_CLOSED",
        ))

    def _observe(self, entity_id: str) -> VersionedRecord | None:
        """Read the committed record and pin its version in the read set."""
        with self._store._lock:
            latest = self._store._latest(entity_id)
        self._reads.setdefault(entity_id, latest.version if latest is not None else 0)
        return latest

    def get(self, entity_id: str) -> Ok[VersionedRecord] | Err[PersistenceError]:
        if (closed := self._closed("get")) is not None:
            return closed
        if entity_id in self._writes:
            buffered = self._writes[entity_id]
            if buffered is _DELETED:
                return Err(_not_found("get", entity_id))
            return Ok(VersionedRecord(
                entity_id=entity_id,
                version=self._reads.get(entity_id, 0),
                record=buffered,
                written_at=UtcDatetime.now(),
                tx_id=self._tx_id,
            ))
        latest = self._observe(entity_id)
        if latest is None or latest.record is None:
            return Err(_not_found("get", entity_id))
        if latest.version != self._reads[entity_id]:
            # Moved since first read; surface it at commit instead of mixing versions.
            return Ok(VersionedRecord(
                entity_id=entity_id,
                version=self._reads[entity_id],
                record=latest.record,
                written_at=latest.written_at,
                tx_id=latest.tx_id,
            ))
        return Ok(latest)

    def put(self, entity_id: str, record: object) -> Ok[None] | Err[PersistenceError]:
        if (closed := self._closed("put")) is not None:
            return closed
        if entity_id not in self._reads:
            self._observe(entity_id)
        self._writes[entity_id] = record
        return Ok(None)

    def delete(self, entity_id: str) -> Ok[None] | Err[PersistenceError]:
        if (closed := self._closed("delete")) is not None:
            return closed
        if entity_id not in self._reads:
            self._observe(entity_id)
        self._writes[entity_id] = _DELETED
        return Ok(None)

    def keys(self, prefix: str) -> Ok[tuple[str, ...]] | Err[PersistenceError]:
        """Committed live keys overlaid with this transaction's own writes.

        Keys are not pinned in the read set; callers read each record they act on.
        """
        if (closed := self._closed("keys")) is not None:
            return closed
        match self._store.keys(prefix):
            case Err() as e:
                return e
            case Ok(committed):
                pass
        live = set(committed)
        for entity_id, record in self._writes.items():
            if not entity_id.startswith(prefix):
                continue
            if record is _DELETED:
                live.discard(entity_id)
            else:
                live.add(entity_id)
        return Ok(tuple(sorted(live)))

    def commit(self) -> Ok[int] | Err[VersionConflictError | PersistenceError]:
        if (closed := self._closed("commit")) is not None:
            return closed
        if time.monotonic() > self._deadline:
            self._state = _TxState.ROLLED_BACK
            return Err(_persistence_error(
                "commit", f"Transaction {self._tx_id} exceeded its timeout", code="TX_TIMEOUT",
            ))
        result = self._store._commit(self._tx_id, self._reads, self._writes)
        self._state = _TxState.COMMITTED if isinstance(result, Ok) else _TxState.ROLLED_BACK
        return result

    def rollback(self) -> None:
        if self._state is _TxState.OPEN:
            self._state = _TxState.ROLLED_BACK
            self._writes.clear()

    def pending_writes(self) -> int:
        """Test-only helper."""
        return len(self._writes)


@final
class InMemoryEventBus:
    """In-memory event bus. Messages stored per topic as (key, value) pairs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._topics: dict[str, list[tuple[str, bytes]]] = {}

    def publish(
        self, topic: str, key: str, value: bytes,
    ) -> Ok[None] | Err[PersistenceError]:
        with self._lock:
            self._topics.setdefault(topic, []).append((key, value))
        return Ok(None)

    def get_messages(self, topic: str) -> list[tuple[str, bytes]]:
        """Test-only helper."""
        with self._lock:
            return list(self._topics.get(topic, []))

    def topic_count(self) -> int:
        """Test-only helper."""
        return len(self._topics)
