"""Context-scoped Identity Resolver.

Participants are registered once with their authorization scope. A request
handler (or a Temporal activity) enters acting_as(participant_id) for the
duration of the call; resolve_caller() reads the participant from a
ContextVar, so concurrent threads and asyncio tasks never see each other's
caller.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import final

from cpnet.core.errors import AuthorizationError
from cpnet.core.party import CallerIdentity
from cpnet.core.result import Err, Ok
from cpnet.core.types import UtcDatetime

_CURRENT_PARTICIPANT: ContextVar[str | None] = ContextVar(
    "cpnet_current_participant", default=None,
)


def _auth_error(participant_id: str, message: str, code: str) -> AuthorizationError:
    return AuthorizationError(
        message=message,
        code=code,
        timestamp=UtcDatetime.now(),
        source="identity.ContextIdentityResolver.resolve_caller",
        participant_id=participant_id,
        resource="caller",
    )


@final
class ContextIdentityResolver:
    """Directory of participants plus the caller bound to the current context."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._directory: dict[str, CallerIdentity] = {}

    def register(self, identity: CallerIdentity) -> None:
        """Add or replace a participant's scope."""
        with self._lock:
            self._directory[identity.participant_id.value] = identity

    @contextmanager
    def acting_as(self, participant_id: str) -> Iterator[None]:
        token = _CURRENT_PARTICIPANT.set(participant_id)
        try:
            yield
        finally:
            _CURRENT_PARTICIPANT.reset(token)

    def resolve_caller(self) -> Ok[CallerIdentity] | Err[AuthorizationError]:
        participant_id = _CURRENT_PARTICIPANT.get()
        if participant_id is None:
            return Err(_auth_error("", "No caller bound to the current context", "NO_CALLER"))
        with self._lock:
            identity = self._directory.get(participant_id)
        if identity is None:
            return Err(_auth_error(
                participant_id, f"Unknown participant: {participant_id}", "UNKNOWN_PARTICIPANT",
            ))
        return Ok(identity)
