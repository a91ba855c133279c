"""Concurrent callers against one InMemoryLedgerStore.

Threads race real engine operations; the store's compare-and-swap commit
and the engine's retry loop must keep every outcome exactly-once.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from cpnet.core.party import trader_identity
from cpnet.core.result import Err, Ok, unwrap
from cpnet.infra.config import TransactionPolicy
from cpnet.instrument.paper import PaperStatus
from cpnet.ledger.onboarding import open_account
from conftest import (
    Network,
    build_network,
    create_request,
    issue_papers,
    list_papers,
    purchase_request,
    redeem_request,
)

BUYERS = 8


def _network_with_buyers() -> Network:
    net = build_network(tx_policy=TransactionPolicy(max_attempts=BUYERS + 2))
    for i in range(BUYERS):
        unwrap(open_account(
            net.store, company="B", account_id=f"ACC-B{10 + i}", currency="USD",
            opening_balance=Decimal("1000000"),
        ))
        net.resolver.register(trader_identity(f"T{10 + i}", frozenset({"B"})))
    return net


class TestRacingPurchases:
    def test_exactly_one_buyer_wins(self) -> None:
        net = _network_with_buyers()
        issue_papers(net, "CP001")
        listing_id = list_papers(net, "CP001").listings[0].listing_id
        barrier = threading.Barrier(BUYERS)

        def buy(i: int):  # type: ignore[no-untyped-def]
            barrier.wait()
            with net.resolver.acting_as(f"T{10 + i}"):
                return net.engine.purchase(purchase_request(listing_id, account=f"ACC-B{10 + i}"))

        with ThreadPoolExecutor(max_workers=BUYERS) as pool:
            results = list(pool.map(buy, range(BUYERS)))

        wins = [r for r in results if isinstance(r, Ok)]
        losses = [r for r in results if isinstance(r, Err)]
        assert len(wins) == 1
        assert {r.error.code for r in losses} == {"LISTING_NOT_FOUND"}

        winner = wins[0].value.buyer_account
        total_paid = sum(
            Decimal("1000000") - net.balance(f"ACC-B{10 + i}") for i in range(BUYERS)
        )
        assert total_paid == Decimal("950000")
        assert net.balance("ACC-A1") == Decimal("950000")
        paper = unwrap(net.engine.get_paper("CP001"))
        assert paper.status is PaperStatus.OWNED
        assert paper.owning_account == winner

    def test_different_listings_all_succeed(self) -> None:
        net = _network_with_buyers()
        cusips = [f"CP{i:03d}" for i in range(BUYERS)]
        issue_papers(net, *cusips, par="1000")
        listings = list_papers(net, *cusips).listings

        def buy(i: int):  # type: ignore[no-untyped-def]
            with net.resolver.acting_as(f"T{10 + i}"):
                return net.engine.purchase(
                    purchase_request(listings[i].listing_id, account=f"ACC-B{10 + i}"),
                )

        with ThreadPoolExecutor(max_workers=BUYERS) as pool:
            results = list(pool.map(buy, range(BUYERS)))

        assert all(isinstance(r, Ok) for r in results)
        assert net.balance("ACC-A1") == Decimal("950") * BUYERS


class TestRacingRedemptions:
    def test_redeemed_once(self) -> None:
        net = build_network()
        issue_papers(net, "CP001")
        net.clock.advance(30)
        barrier = threading.Barrier(4)

        def redeem(_: int):  # type: ignore[no-untyped-def]
            barrier.wait()
            with net.resolver.acting_as("A"):
                return net.engine.redeem(redeem_request("CP001"))

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(redeem, range(4)))

        assert sum(isinstance(r, Ok) for r in results) == 1
        assert {r.error.code for r in results if isinstance(r, Err)} == {"ALREADY_REDEEMED"}
        assert net.balance("ACC-A1") == Decimal("1000000")


class TestRacingIssues:
    def test_same_cusip_issued_once(self) -> None:
        net = build_network()
        barrier = threading.Barrier(4)

        def issue(_: int):  # type: ignore[no-untyped-def]
            barrier.wait()
            with net.resolver.acting_as("A"):
                return net.engine.issue(create_request("CP001"))

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(issue, range(4)))

        assert sum(isinstance(r, Ok) for r in results) == 1
        assert {r.error.code for r in results if isinstance(r, Err)} == {"ALREADY_EXISTS"}
