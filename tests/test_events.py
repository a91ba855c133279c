"""Tests for cpnet.ledger.events -- topics, keys and event ids."""

from __future__ import annotations

import json
from datetime import UTC, date, datetime
from decimal import Decimal

from cpnet.core.identifiers import Cusip, Did
from cpnet.core.money import NonEmptyStr, NonNegativeDecimal, PositiveDecimal
from cpnet.core.result import unwrap
from cpnet.core.serialization import canonical_bytes
from cpnet.core.types import FrozenMap, UtcDatetime
from cpnet.infra.config import (
    TOPIC_DID_ASSIGNED,
    TOPIC_LISTED,
    TOPIC_LISTING_WITHDRAWN,
    TOPIC_PAPER_CREATED,
)
from cpnet.instrument.paper import CommercialPaper
from cpnet.ledger.events import (
    AssignDidEvent,
    CreatePaperEvent,
    LedgerEvent,
    ListOnMarketEvent,
    WithdrawListingEvent,
)
from cpnet.ledger.types import PaperListing

NOW = UtcDatetime(value=datetime(2025, 1, 6, 9, 30, tzinfo=UTC))

PAPER = CommercialPaper(
    cusip=Cusip(value="CP001"),
    ticker=NonEmptyStr(value="ALPHA"),
    currency=NonEmptyStr(value="USD"),
    par=PositiveDecimal(value=Decimal("1000000")),
    maturity_days=30,
    issuer="A",
    owner="A",
    owning_account="ACC-A1",
    issue_date=date(2025, 1, 6),
)

LISTING = PaperListing(
    listing_id="LST-1",
    market_id="M1",
    cusip="CP001",
    seller="A",
    seller_account="ACC-A1",
    discount=NonNegativeDecimal(value=Decimal("0.05")),
    listed_at=NOW,
)


class TestRouting:
    def test_topics_and_keys(self) -> None:
        did = unwrap(Did.create("did", "sov", "V4SGRU86Z58d6TV7PBUe6f"))
        cases = [
            (CreatePaperEvent(paper=PAPER), TOPIC_PAPER_CREATED, "CP001"),
            (ListOnMarketEvent(market="M1", listings=(LISTING,), rejected=FrozenMap.EMPTY),
             TOPIC_LISTED, "M1"),
            (AssignDidEvent(company="A", did=did), TOPIC_DID_ASSIGNED, "A"),
            (WithdrawListingEvent(listing=LISTING, reason="Owner"), TOPIC_LISTING_WITHDRAWN, "LST-1"),
        ]
        for payload, topic, key in cases:
            event = LedgerEvent.create(payload, NOW, "seed")
            assert event.topic == topic
            assert event.key == key


class TestEventIds:
    def test_same_seed_same_id(self) -> None:
        a = LedgerEvent.create(CreatePaperEvent(paper=PAPER), NOW, "issue|t|0")
        b = LedgerEvent.create(CreatePaperEvent(paper=PAPER), NOW, "issue|t|0")
        assert a.event_id == b.event_id
        assert a.event_id.startswith("EVT-")

    def test_different_seed_different_id(self) -> None:
        a = LedgerEvent.create(CreatePaperEvent(paper=PAPER), NOW, "issue|t|0")
        b = LedgerEvent.create(CreatePaperEvent(paper=PAPER), NOW, "issue|t|1")
        assert a.event_id != b.event_id

    def test_serializes(self) -> None:
        event = LedgerEvent.create(CreatePaperEvent(paper=PAPER), NOW, "s")
        decoded = json.loads(unwrap(canonical_bytes(event)))
        assert decoded["payload"]["paper"]["status"] == "Issued"
        assert decoded["payload"]["paper"]["cusip"]["value"] == "CP001"
