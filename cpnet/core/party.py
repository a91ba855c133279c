"""Participants -- capability-tagged caller identities.

A Company acting for itself and a Trader acting for several companies are
not different classes. Both resolve to a CallerIdentity whose scope lists
the companies and accounts it may act for; authorization checks only look
at that scope.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import final

from cpnet.core.money import NonEmptyStr


class ParticipantKind(Enum):
    """What kind of network participant the caller is."""

    COMPANY = "Company"
    TRADER = "Trader"
    OPERATOR = "Operator"  # network operator: may act for every company


@final
@dataclass(frozen=True, slots=True)
class CallerIdentity:
    """Resolved caller with its authorization scope."""

    participant_id: NonEmptyStr
    kind: ParticipantKind
    authorized_companies: frozenset[str] = frozenset()
    authorized_accounts: frozenset[str] = frozenset()

    def can_act_for_company(self, symbol: str) -> bool:
        if self.kind is ParticipantKind.OPERATOR:
            return True
        return symbol in self.authorized_companies

    def can_act_for_account(self, account_id: str, owning_company: str) -> bool:
        """Account scope: listed explicitly, or via its owning company."""
        return (
            account_id in self.authorized_accounts
            or self.can_act_for_company(owning_company)
        )


def company_identity(symbol: str, *accounts: str) -> CallerIdentity:
    """Identity of a company acting on its own behalf."""
    return CallerIdentity(
        participant_id=NonEmptyStr(value=symbol),
        kind=ParticipantKind.COMPANY,
        authorized_companies=frozenset({symbol}),
        authorized_accounts=frozenset(accounts),
    )


def trader_identity(
    trader_id: str,
    companies: frozenset[str],
    accounts: frozenset[str] = frozenset(),
) -> CallerIdentity:
    return CallerIdentity(
        participant_id=NonEmptyStr(value=trader_id),
        kind=ParticipantKind.TRADER,
        authorized_companies=companies,
        authorized_accounts=accounts,
    )
