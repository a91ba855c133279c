"""Tests for cpnet.core.party -- caller scopes."""

from __future__ import annotations

from cpnet.core.party import ParticipantKind, company_identity, trader_identity
from conftest import operator_identity


class TestCallerIdentity:
    def test_company_acts_for_itself_only(self) -> None:
        a = company_identity("A")
        assert a.kind is ParticipantKind.COMPANY
        assert a.can_act_for_company("A")
        assert not a.can_act_for_company("B")

    def test_account_via_owning_company(self) -> None:
        b = company_identity("B")
        assert b.can_act_for_account("ACC-B1", "B")
        assert not b.can_act_for_account("ACC-A1", "A")

    def test_explicit_account_scope(self) -> None:
        t = trader_identity("T2", frozenset(), frozenset({"ACC-A1"}))
        assert t.can_act_for_account("ACC-A1", "A")
        assert not t.can_act_for_company("A")

    def test_trader_for_many_companies(self) -> None:
        t = trader_identity("T1", frozenset({"A", "B"}))
        assert t.kind is ParticipantKind.TRADER
        assert t.can_act_for_company("A") and t.can_act_for_company("B")
        assert not t.can_act_for_company("C")

    def test_operator_acts_for_everyone(self) -> None:
        ops = operator_identity()
        assert ops.can_act_for_company("ANY")
        assert ops.can_act_for_account("ACC-X", "X")
