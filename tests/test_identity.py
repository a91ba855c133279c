"""Tests for cpnet.infra.identity -- context-scoped caller resolution."""

from __future__ import annotations

import asyncio
import threading

import pytest

from cpnet.core.party import company_identity
from cpnet.core.result import Err, unwrap
from cpnet.infra.identity import ContextIdentityResolver


def _resolver() -> ContextIdentityResolver:
    resolver = ContextIdentityResolver()
    resolver.register(company_identity("A"))
    resolver.register(company_identity("B"))
    return resolver


class TestContextIdentityResolver:
    def test_no_caller_bound(self) -> None:
        result = _resolver().resolve_caller()
        assert isinstance(result, Err)
        assert result.error.code == "NO_CALLER"

    def test_unknown_participant(self) -> None:
        resolver = _resolver()
        with resolver.acting_as("ZZZ"):
            result = resolver.resolve_caller()
        assert isinstance(result, Err)
        assert result.error.code == "UNKNOWN_PARTICIPANT"

    def test_acting_as_scope(self) -> None:
        resolver = _resolver()
        with resolver.acting_as("A"):
            assert unwrap(resolver.resolve_caller()).participant_id.value == "A"
            with resolver.acting_as("B"):
                assert unwrap(resolver.resolve_caller()).participant_id.value == "B"
            assert unwrap(resolver.resolve_caller()).participant_id.value == "A"
        assert isinstance(resolver.resolve_caller(), Err)

    def test_threads_do_not_share_caller(self) -> None:
        resolver = _resolver()
        seen: dict[str, str] = {}
        barrier = threading.Barrier(2)

        def work(pid: str) -> None:
            with resolver.acting_as(pid):
                barrier.wait()
                seen[pid] = unwrap(resolver.resolve_caller()).participant_id.value

        threads = [threading.Thread(target=work, args=(p,)) for p in ("A", "B")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert seen == {"A": "A", "B": "B"}

    @pytest.mark.asyncio
    async def test_tasks_do_not_share_caller(self) -> None:
        resolver = _resolver()

        async def work(pid: str) -> str:
            with resolver.acting_as(pid):
                await asyncio.sleep(0)
                return unwrap(resolver.resolve_caller()).participant_id.value

        assert await asyncio.gather(work("A"), work("B")) == ["A", "B"]
