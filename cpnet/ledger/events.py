"""Ledger events emitted by the Trading Engine.

Each payload variant maps to one Event Bus topic. LedgerEvent wraps a
payload with its id and timestamp; the engine stores it as an outbox
record (event:<id>) inside the operation's transaction and publishes it
after commit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import final

from cpnet.core.errors import TradingError
from cpnet.core.identifiers import Did
from cpnet.core.money import Money
from cpnet.core.serialization import derive_id
from cpnet.core.types import FrozenMap, UtcDatetime
from cpnet.infra.config import (
    TOPIC_DID_ASSIGNED,
    TOPIC_LISTED,
    TOPIC_LISTING_WITHDRAWN,
    TOPIC_PAPER_CREATED,
    TOPIC_PURCHASED,
    TOPIC_REDEEMED,
)
from cpnet.instrument.paper import CommercialPaper
from cpnet.ledger.types import PaperListing


@final
@dataclass(frozen=True, slots=True)
class CreatePaperEvent:
    paper: CommercialPaper


@final
@dataclass(frozen=True, slots=True)
class ListOnMarketEvent:
    """Listed subset and the per-CUSIP rejections of one ListOnMarket."""

    market: str
    listings: tuple[PaperListing, ...]
    rejected: FrozenMap[str, TradingError]


@final
@dataclass(frozen=True, slots=True)
class PurchasePaperEvent:
    paper: CommercialPaper
    listing: PaperListing
    buyer_account: str
    settlement: Money


@final
@dataclass(frozen=True, slots=True)
class RedeemPaperEvent:
    """maturedPaper is the redeemed record; payout went to holder_account."""

    matured_paper: CommercialPaper
    holder: str
    holder_account: str
    payout: Money


@final
@dataclass(frozen=True, slots=True)
class AssignDidEvent:
    company: str
    did: Did


@final
@dataclass(frozen=True, slots=True)
class WithdrawListingEvent:
    listing: PaperListing
    reason: str  # "Owner", "Matured" or "Redeemed"


EventPayload = (
    CreatePaperEvent | ListOnMarketEvent | PurchasePaperEvent
    | RedeemPaperEvent | AssignDidEvent | WithdrawListingEvent
)


def topic_for(payload: EventPayload) -> str:
    match payload:
        case CreatePaperEvent():
            return TOPIC_PAPER_CREATED
        case ListOnMarketEvent():
            return TOPIC_LISTED
        case PurchasePaperEvent():
            return TOPIC_PURCHASED
        case RedeemPaperEvent():
            return TOPIC_REDEEMED
        case AssignDidEvent():
            return TOPIC_DID_ASSIGNED
        case WithdrawListingEvent():
            return TOPIC_LISTING_WITHDRAWN


def subject_of(payload: EventPayload) -> str:
    """Entity the event is about; used as the bus message key."""
    match payload:
        case CreatePaperEvent(paper=paper):
            return paper.cusip.value
        case ListOnMarketEvent(market=market):
            return market
        case PurchasePaperEvent(paper=paper):
            return paper.cusip.value
        case RedeemPaperEvent(matured_paper=paper):
            return paper.cusip.value
        case AssignDidEvent(company=company):
            return company
        case WithdrawListingEvent(listing=listing):
            return listing.listing_id


@final
@dataclass(frozen=True, slots=True)
class LedgerEvent:
    """An emitted event: payload plus identity and time."""

    event_id: str
    payload: EventPayload
    timestamp: UtcDatetime

    @property
    def topic(self) -> str:
        return topic_for(self.payload)

    @property
    def key(self) -> str:
        return subject_of(self.payload)

    @staticmethod
    def create(payload: EventPayload, timestamp: UtcDatetime, seed: str) -> LedgerEvent:
        """Id derived from type, subject and a seed stable across retries."""
        event_id = derive_id("EVT", type(payload).__name__, subject_of(payload), seed)
        return LedgerEvent(event_id=event_id, payload=payload, timestamp=timestamp)
