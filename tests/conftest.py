"""Hypothesis strategies and pytest fixtures for cpnet.

The `network` fixture bootstraps a small trading network:
  - company A (issuer), issuing account ACC-A1 (USD, empty)
  - company B (buyer), issuing account ACC-B0 and trading account ACC-B1
    (USD, 5,000,000)
  - market M1 (USD, max 270 days to maturity)
  - participants A, B, trader T1 (acts for B) and operator OPS
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, settings
from hypothesis import strategies as st
from hypothesis.strategies import SearchStrategy

from cpnet.core.errors import VersionConflictError
from cpnet.core.money import NonEmptyStr
from cpnet.core.party import CallerIdentity, ParticipantKind, company_identity, trader_identity
from cpnet.core.result import Err, Ok, unwrap
from cpnet.core.types import UtcDatetime
from cpnet.gateway.types import (
    CreatePaperRequest,
    ListOnMarketRequest,
    PurchasePaperRequest,
    RedeemPaperRequest,
)
from cpnet.infra.config import LedgerPolicy, TransactionPolicy
from cpnet.infra.identity import ContextIdentityResolver
from cpnet.infra.memory_adapter import InMemoryEventBus, InMemoryLedgerStore
from cpnet.ledger.engine import TradingEngine
from cpnet.ledger.events import ListOnMarketEvent
from cpnet.ledger.onboarding import create_market, open_account, register_company

# ---------------------------------------------------------------------------
# Hypothesis global settings
# ---------------------------------------------------------------------------

settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.register_profile(
    "dev",
    max_examples=50,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.load_profile("dev")


# ===================================================================
# STRATEGIES
# ===================================================================


def money_amounts(
    min_value: str = "0.01", max_value: str = "10000000",
) -> SearchStrategy[Decimal]:
    """Positive USD amounts with cent precision."""
    return st.decimals(
        min_value=Decimal(min_value),
        max_value=Decimal(max_value),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    )


def fraction_discounts() -> SearchStrategy[Decimal]:
    """Discounts valid under the fraction-of-par convention: [0, 1)."""
    return st.decimals(
        min_value=Decimal("0"), max_value=Decimal("0.9999"), places=4,
        allow_nan=False, allow_infinity=False,
    )


def cusips() -> SearchStrategy[str]:
    return st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789", min_size=1, max_size=12)


# ===================================================================
# CLOCK
# ===================================================================

START = datetime(2025, 1, 6, 9, 30, tzinfo=UTC)


class FakeClock:
    """Injectable engine clock; tests move it forward explicitly."""

    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def __call__(self) -> UtcDatetime:
        return UtcDatetime(value=self.current)

    def advance(self, days: int) -> None:
        self.current = self.current + timedelta(days=days)


# ===================================================================
# NETWORK FIXTURE
# ===================================================================


def operator_identity(participant_id: str = "OPS") -> CallerIdentity:
    return CallerIdentity(
        participant_id=NonEmptyStr(value=participant_id),
        kind=ParticipantKind.OPERATOR,
    )


@dataclass
class Network:
    store: InMemoryLedgerStore
    bus: InMemoryEventBus
    resolver: ContextIdentityResolver
    clock: FakeClock
    engine: TradingEngine

    def balance(self, account_id: str) -> Decimal:
        return unwrap(self.engine.get_account(account_id)).cash_balance.value


def build_network(
    policy: LedgerPolicy | None = None,
    tx_policy: TransactionPolicy | None = None,
    store: InMemoryLedgerStore | None = None,
) -> Network:
    store = store or InMemoryLedgerStore()
    bus = InMemoryEventBus()
    resolver = ContextIdentityResolver()
    clock = FakeClock()

    unwrap(register_company(
        store, symbol="A", name="Alpha Corp", issuing_account_id="ACC-A1", currency="USD",
    ))
    unwrap(register_company(
        store, symbol="B", name="Beta Holdings", issuing_account_id="ACC-B0", currency="USD",
    ))
    unwrap(open_account(
        store, company="B", account_id="ACC-B1", currency="USD",
        opening_balance=Decimal("5000000"),
    ))
    unwrap(create_market(store, market_id="M1", currency="USD", max_maturity_days=270))

    resolver.register(company_identity("A"))
    resolver.register(company_identity("B"))
    resolver.register(trader_identity("T1", frozenset({"B"})))
    resolver.register(operator_identity())

    engine = TradingEngine(
        store, resolver, bus, policy=policy, tx_policy=tx_policy, clock=clock,
    )
    return Network(store=store, bus=bus, resolver=resolver, clock=clock, engine=engine)


@pytest.fixture
def network() -> Network:
    return build_network()


# ===================================================================
# REQUEST BUILDERS
# ===================================================================


def create_request(
    cusip: str = "CP001",
    *,
    issuer: str = "A",
    par: str = "1000000",
    maturity: int = 30,
    currency: str = "USD",
    count: int = 1,
) -> CreatePaperRequest:
    return unwrap(CreatePaperRequest.create(
        cusip=cusip,
        ticker="ALPHA",
        maturity=maturity,
        working_currency=currency,
        par=Decimal(par),
        issuer=issuer,
        number_to_create=count,
        submitted_at=UtcDatetime.now(),
    ))


def list_request(*cusips: str, market: str = "M1", discount: str = "0.05") -> ListOnMarketRequest:
    return unwrap(ListOnMarketRequest.create(
        market=market,
        discount=Decimal(discount),
        papers_to_list=tuple(cusips),
        submitted_at=UtcDatetime.now(),
    ))


def purchase_request(
    listing_id: str, account: str = "ACC-B1", market: str = "M1",
) -> PurchasePaperRequest:
    return unwrap(PurchasePaperRequest.create(
        market=market, listing_id=listing_id, account=account, submitted_at=UtcDatetime.now(),
    ))


def redeem_request(cusip: str) -> RedeemPaperRequest:
    return unwrap(RedeemPaperRequest.create(matured_paper=cusip, submitted_at=UtcDatetime.now()))


# ===================================================================
# OPERATION SHORTCUTS
# ===================================================================


def issue_papers(net: Network, *cusips: str, **kwargs: object) -> None:
    """Issue each CUSIP as company A."""
    with net.resolver.acting_as("A"):
        for cusip in cusips or ("CP001",):
            unwrap(net.engine.issue(create_request(cusip, **kwargs)))  # type: ignore[arg-type]


def list_papers(
    net: Network, *cusips: str, participant: str = "A", **kwargs: str,
) -> ListOnMarketEvent:
    with net.resolver.acting_as(participant):
        return unwrap(net.engine.list_on_market(list_request(*cusips, **kwargs)))


# ===================================================================
# STORE DOUBLES
# ===================================================================


class ConflictingTx:
    """Delegates to a real transaction but fails its commit with a version conflict."""

    def __init__(self, inner) -> None:  # type: ignore[no-untyped-def]
        self._inner = inner

    def __getattr__(self, name: str) -> object:
        return getattr(self._inner, name)

    def commit(self) -> Err[VersionConflictError]:
        self._inner.rollback()
        return Err(VersionConflictError(
            message="simulated", code="VERSION_CONFLICT", timestamp=UtcDatetime.now(),
            source="test", entity_id="paper:CP001", expected_version=0, actual_version=1,
        ))


class RaisingTx:
    def __init__(self, inner) -> None:  # type: ignore[no-untyped-def]
        self._inner = inner

    def __getattr__(self, name: str) -> object:
        return getattr(self._inner, name)

    def put(self, entity_id: str, record: object) -> Ok[None]:
        raise RuntimeError("cancelled mid-operation")


class FlakyStore:
    """Wraps InMemoryLedgerStore; the first `conflicts` transactions lose their commit."""

    def __init__(self, inner: InMemoryLedgerStore, conflicts: int, tx_type: type = ConflictingTx) -> None:
        self._inner = inner
        self._remaining = conflicts
        self._tx_type = tx_type
        self.begins = 0
        self.last_tx = None

    def __getattr__(self, name: str) -> object:
        return getattr(self._inner, name)

    def begin(self, timeout_s: float | None = None):  # type: ignore[no-untyped-def]
        self.begins += 1
        tx = self._inner.begin(timeout_s)
        self.last_tx = tx
        if self._remaining > 0:
            self._remaining -= 1
            return self._tx_type(tx)
        return tx

