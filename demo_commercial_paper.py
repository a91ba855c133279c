"""
demo_commercial_paper.py -- A walkthrough of one commercial paper from issue to redemption.

Alpha Corp (A) issues 30-day paper CP001 with par 1,000,000 USD, lists it on
market M1 at a 5% discount, and Beta Holdings (B) buys it through its trader
T1 from account ACC-B1. Thirty days later B redeems at par.

Every step goes through the TradingEngine, so each one is an optimistic
transaction over the in-memory ledger store and publishes events on the bus.

Run this:  .venv/bin/python demo_commercial_paper.py
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from cpnet.core.party import company_identity, trader_identity
from cpnet.core.result import Err, Ok
from cpnet.core.types import UtcDatetime
from cpnet.gateway.types import (
    AssignDidRequest,
    CreatePaperRequest,
    ListOnMarketRequest,
    PublicDid,
    PurchasePaperRequest,
    RedeemPaperRequest,
)
from cpnet.infra.config import (
    TOPIC_DID_ASSIGNED,
    TOPIC_LISTED,
    TOPIC_PAPER_CREATED,
    TOPIC_PURCHASED,
    TOPIC_REDEEMED,
)
from cpnet.infra.identity import ContextIdentityResolver
from cpnet.infra.memory_adapter import InMemoryEventBus, InMemoryLedgerStore
from cpnet.ledger.engine import TradingEngine
from cpnet.ledger.onboarding import create_market, open_account, register_company


def sep(title: str) -> None:
    """Print a section separator."""
    print(f"\n{'=' * 72}")
    print(f"  {title}")
    print(f"{'=' * 72}\n")


class DemoClock:
    """Engine clock that the demo moves forward by hand."""

    def __init__(self) -> None:
        self.current = datetime(2025, 1, 6, 9, 30, tzinfo=UTC)

    def __call__(self) -> UtcDatetime:
        return UtcDatetime(value=self.current)


def expect[T](result: Ok[T] | Err[object], what: str) -> T:
    match result:
        case Ok(value):
            return value
        case Err(e):
            raise RuntimeError(f"{what} failed: {e}")


# ============================================================================
#  STEP 1: ONBOARD COMPANIES, ACCOUNTS AND A MARKET
# ============================================================================
#
# Onboarding writes reference data straight to the store. Each company gets
# an issuing account; B also opens a funded trading account.

sep("STEP 1: Onboard companies, accounts and market M1")

store = InMemoryLedgerStore()
bus = InMemoryEventBus()
resolver = ContextIdentityResolver()
clock = DemoClock()

expect(register_company(
    store, symbol="A", name="Alpha Corp", issuing_account_id="ACC-A1", currency="USD",
), "register A")
expect(register_company(
    store, symbol="B", name="Beta Holdings", issuing_account_id="ACC-B0", currency="USD",
), "register B")
expect(open_account(
    store, company="B", account_id="ACC-B1", currency="USD", opening_balance=Decimal("5000000"),
), "open ACC-B1")
market = expect(create_market(store, market_id="M1", currency="USD", max_maturity_days=270), "create M1")

resolver.register(company_identity("A"))
resolver.register(company_identity("B"))
resolver.register(trader_identity("T1", frozenset({"B"})))

engine = TradingEngine(store, resolver, bus, clock=clock)

print(f"  Market:             {market.market_id.value} ({market.currency.value}, "
      f"max {market.max_maturity_days} days)")
for account_id in ("ACC-A1", "ACC-B0", "ACC-B1"):
    account = expect(engine.get_account(account_id), account_id)
    print(f"  {account_id}:             {account.cash_balance.value} {account.working_currency.value}")


# ============================================================================
#  STEP 2: ISSUE CP001
# ============================================================================
#
# Gateway requests are validated at construction; the engine then checks
# that the caller may act for the issuer and writes the paper.

sep("STEP 2: Alpha Corp issues CP001")

issue_request = expect(CreatePaperRequest.create(
    cusip="CP001",
    ticker="ALPHA",
    maturity=30,
    working_currency="USD",
    par=Decimal("1000000"),
    issuer="A",
    submitted_at=clock(),
), "CreatePaperRequest")

with resolver.acting_as("A"):
    (created,) = expect(engine.issue(issue_request), "issue")

paper = created.paper
print(f"  CUSIP:              {paper.cusip.value}")
print(f"  Par:                {paper.par.value} {paper.currency.value}")
print(f"  Issued / matures:   {paper.issue_date} / {paper.maturity_date}")
print(f"  Status:             {paper.status.value}")


# ============================================================================
#  STEP 3: LIST ON M1 AT A 5% DISCOUNT
# ============================================================================

sep("STEP 3: List CP001 on M1")

list_request = expect(ListOnMarketRequest.create(
    market="M1", discount=Decimal("0.05"), papers_to_list=("CP001",), submitted_at=clock(),
), "ListOnMarketRequest")

with resolver.acting_as("A"):
    listed = expect(engine.list_on_market(list_request), "list")

(listing,) = listed.listings
print(f"  Listing ID:         {listing.listing_id}")
print(f"  Discount:           {listing.discount.value}")
print(f"  Rejected:           {len(listed.rejected.items())}")


# ============================================================================
#  STEP 4: TRADER T1 BUYS FOR BETA HOLDINGS
# ============================================================================
#
# Settlement price = par * (1 - discount) = 950,000. Cash moves from ACC-B1
# to the seller's account and ownership moves to B in the same transaction.

sep("STEP 4: T1 buys CP001 from ACC-B1")

purchase_request = expect(PurchasePaperRequest.create(
    market="M1", listing_id=listing.listing_id, account="ACC-B1", submitted_at=clock(),
), "PurchasePaperRequest")

with resolver.acting_as("T1"):
    purchased = expect(engine.purchase(purchase_request), "purchase")

print(f"  Settlement:         {purchased.settlement}")
print(f"  New owner:          {purchased.paper.owner} ({purchased.paper.owning_account})")
print(f"  ACC-A1:             {expect(engine.get_account('ACC-A1'), 'ACC-A1').cash_balance.value}")
print(f"  ACC-B1:             {expect(engine.get_account('ACC-B1'), 'ACC-B1').cash_balance.value}")


# ============================================================================
#  STEP 5: ASSIGN A PUBLIC DID TO BETA HOLDINGS
# ============================================================================

sep("STEP 5: Assign did:sov to Beta Holdings")

did_request = expect(AssignDidRequest.create(
    target_company="B",
    publicdid=PublicDid(scheme="did", method="sov", identifier="7Tqg6BwSSWapxgUDm9KKgg"),
    submitted_at=clock(),
), "AssignDidRequest")

with resolver.acting_as("B"):
    assigned = expect(engine.assign_did(did_request), "assign_did")

print(f"  Company:            {assigned.company}")
print(f"  DID:                {assigned.did.value}")


# ============================================================================
#  STEP 6: REDEEM AT MATURITY
# ============================================================================
#
# Redeeming before the maturity date is a NOT_MATURED conflict. Once the
# clock reaches maturity the holder is paid par.

sep("STEP 6: Redeem CP001")

redeem_request = expect(RedeemPaperRequest.create(matured_paper="CP001", submitted_at=clock()), "redeem")

with resolver.acting_as("B"):
    early = engine.redeem(redeem_request)
match early:
    case Err(e):
        print(f"  Day 0:              rejected with {e.code}")
    case Ok(_):
        raise RuntimeError("redeemed before maturity")

clock.current += timedelta(days=30)
with resolver.acting_as("B"):
    redeemed = expect(engine.redeem(redeem_request), "redeem")

print(f"  Day 30:             paid {redeemed.payout} to {redeemed.holder_account}")
print(f"  Status:             {redeemed.matured_paper.status.value}")
print(f"  ACC-B1:             {expect(engine.get_account('ACC-B1'), 'ACC-B1').cash_balance.value}")


# ============================================================================
#  SUMMARY
# ============================================================================

sep("SUMMARY")

print("  Events published")
for topic in (TOPIC_PAPER_CREATED, TOPIC_LISTED, TOPIC_PURCHASED, TOPIC_DID_ASSIGNED, TOPIC_REDEEMED):
    print(f"    {topic:32s} {len(bus.get_messages(topic))}")
print()
print("Done. B paid 950,000 for CP001 and received 1,000,000 at maturity.")
