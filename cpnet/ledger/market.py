"""Market Book -- listings per market, matching, withdrawal and maturity sweep.

Each listing is its own record (listing:<id>) so purchases of different
listings never contend. take() is a check-and-remove inside the caller's
transaction; the store's compare-and-swap commit makes it exactly-once
across concurrent buyers.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import final

from cpnet.core.errors import (
    ConflictReason,
    CurrencyMismatchError,
    PersistenceError,
    StateConflictError,
    TradingError,
    ValidationError,
    conflict,
)
from cpnet.core.money import NonNegativeDecimal
from cpnet.core.result import Err, Ok
from cpnet.core.serialization import derive_id
from cpnet.core.types import FrozenMap, UtcDatetime
from cpnet.infra.config import LedgerPolicy
from cpnet.infra.protocols import LedgerStore, LedgerTransaction
from cpnet.instrument.paper import CommercialPaper, PaperStatus, validate_discount
from cpnet.ledger._store import load
from cpnet.ledger.registry import PaperRegistry
from cpnet.ledger.types import (
    LISTING_PREFIX,
    ListingBatch,
    Market,
    PaperListing,
    listing_key,
    market_key,
    paper_key,
)


@final
class MarketBook:
    """Stateless service over Market and PaperListing records."""

    def __init__(self, registry: PaperRegistry, policy: LedgerPolicy | None = None) -> None:
        self._registry = registry
        self._policy = policy or LedgerPolicy()

    def get_market(
        self, tx: LedgerTransaction, market_id: str,
    ) -> Ok[Market] | Err[StateConflictError | PersistenceError]:
        return load(tx, market_key(market_id), Market, "ledger.market.get_market")

    # -- List --

    def list(
        self,
        tx: LedgerTransaction,
        market_id: str,
        papers: Sequence[str],
        discount: Decimal,
        as_of: UtcDatetime,
    ) -> Ok[ListingBatch] | Err[ValidationError | StateConflictError | PersistenceError]:
        """List each CUSIP in papers; per-item failures land in the batch.

        Sale proceeds go to each paper's owning account. An invalid discount
        or an unknown market fails the whole batch.
        """
        source = "ledger.market.list"
        match validate_discount(discount, self._policy.discount_convention):
            case Err() as e:
                return e
            case Ok(valid_discount):
                pass
        match self.get_market(tx, market_id):
            case Err() as e:
                return e
            case Ok(market):
                pass

        listed: list[PaperListing] = []
        rejected: dict[str, TradingError] = {}
        for cusip in dict.fromkeys(papers):
            match self._list_one(tx, market, cusip, valid_discount, as_of):
                case Ok(listing):
                    listed.append(listing)
                case Err(PersistenceError() as store_error):
                    return Err(store_error)
                case Err(error):
                    rejected[cusip] = error.with_context(f"{source}[{cusip}]")

        return Ok(ListingBatch(
            market_id=market_id,
            listed=tuple(listed),
            rejected=FrozenMap.create(rejected).unwrap(),
        ))

    def _list_one(
        self,
        tx: LedgerTransaction,
        market: Market,
        cusip: str,
        discount: NonNegativeDecimal,
        as_of: UtcDatetime,
    ) -> Ok[PaperListing] | Err[TradingError]:
        match self._registry.get(tx, cusip):
            case Err() as e:
                return e
            case Ok(paper):
                pass
        match self._check_listable(paper, market, as_of):
            case Err() as e:
                return e
        match tx.get(paper_key(cusip)):
            case Err() as e:
                return e
            case Ok(versioned):
                pass
        listing = PaperListing(
            listing_id=derive_id("LST", market.market_id.value, cusip, versioned.version),
            market_id=market.market_id.value,
            cusip=cusip,
            seller=paper.owner,
            seller_account=paper.owning_account,
            discount=discount,
            listed_at=as_of,
        )
        match tx.put(listing_key(listing.listing_id), listing):
            case Err() as e:
                return e
        return self._registry.mark_listed(tx, cusip, listing.listing_id).map(lambda _: listing)

    def _check_listable(
        self, paper: CommercialPaper, market: Market, as_of: UtcDatetime,
    ) -> Ok[None] | Err[StateConflictError | CurrencyMismatchError]:
        source = "ledger.market.list"
        cusip = paper.cusip.value
        if paper.status is PaperStatus.REDEEMED:
            return Err(conflict(cusip, ConflictReason.ALREADY_REDEEMED, f"Paper {cusip} is redeemed", source))
        if paper.status is PaperStatus.LISTED:
            return Err(conflict(
                cusip, ConflictReason.ALREADY_LISTED,
                f"Paper {cusip} is already listed as {paper.listing_id}", source,
            ))
        if paper.currency != market.currency:
            return Err(CurrencyMismatchError(
                message=(
                    f"Paper {cusip} is {paper.currency.value}, market "
                    f"{market.market_id.value} trades {market.currency.value}"
                ),
                code="CURRENCY_MISMATCH",
                timestamp=UtcDatetime.now(),
                source=source,
                expected=market.currency.value,
                actual=paper.currency.value,
            ))
        remaining = paper.days_to_maturity(as_of.day)
        if remaining <= 0:
            return Err(conflict(
                cusip, ConflictReason.PAPER_MATURED,
                f"Paper {cusip} matured on {paper.maturity_date}", source,
            ))
        if remaining > market.max_maturity_days:
            return Err(conflict(
                cusip, ConflictReason.MATURITY_EXCEEDS_MARKET_LIMIT,
                f"Paper {cusip} has {remaining} days to maturity, market "
                f"{market.market_id.value} allows {market.max_maturity_days}",
                source,
            ))
        return Ok(None)

    # -- Match / take --

    def match(
        self, tx: LedgerTransaction, market_id: str, listing_id: str,
    ) -> Ok[PaperListing] | Err[StateConflictError | PersistenceError]:
        source = "ledger.market.match"
        match load(tx, listing_key(listing_id), PaperListing, source):
            case Err(StateConflictError(reason=ConflictReason.UNKNOWN_ENTITY)):
                pass
            case Err() as e:
                return e
            case Ok(listing) if listing.market_id == market_id:
                return Ok(listing)
        return Err(conflict(
            listing_id, ConflictReason.LISTING_NOT_FOUND,
            f"Listing {listing_id} not found on market {market_id}", source,
        ))

    def take(
        self, tx: LedgerTransaction, market_id: str, listing_id: str,
    ) -> Ok[PaperListing] | Err[StateConflictError | PersistenceError]:
        """Match and remove in one step. The paper stays LISTED until ownership moves."""
        match self.match(tx, market_id, listing_id):
            case Err() as e:
                return e
            case Ok(listing):
                pass
        return tx.delete(listing_key(listing_id)).map(lambda _: listing)

    # -- Withdraw --

    def withdraw(
        self, tx: LedgerTransaction, listing_id: str,
    ) -> Ok[PaperListing | None] | Err[StateConflictError | PersistenceError]:
        """Remove a listing and unlist its paper. Ok(None) when already gone."""
        source = "ledger.market.withdraw"
        match load(tx, listing_key(listing_id), PaperListing, source):
            case Err(StateConflictError(reason=ConflictReason.UNKNOWN_ENTITY)):
                return Ok(None)
            case Err() as e:
                return e
            case Ok(listing):
                pass
        match tx.delete(listing_key(listing_id)):
            case Err() as e:
                return e
        match self._registry.get(tx, listing.cusip):
            case Err() as e:
                return e
            case Ok(paper) if paper.listing_id == listing_id:
                match self._registry.mark_unlisted(tx, listing.cusip):
                    case Err() as e:
                        return e
        return Ok(listing)

    def sweep_matured(
        self, tx: LedgerTransaction, market_id: str, as_of: UtcDatetime,
    ) -> Ok[tuple[PaperListing, ...]] | Err[StateConflictError | PersistenceError]:
        """Withdraw every listing on market_id whose paper has matured."""
        if not self._policy.withdraw_on_maturity:
            return Ok(())
        match self.get_market(tx, market_id):
            case Err() as e:
                return e
        match tx.keys(LISTING_PREFIX):
            case Err() as e:
                return e
            case Ok(keys):
                pass
        withdrawn: list[PaperListing] = []
        for key in keys:
            match load(tx, key, PaperListing, "ledger.market.sweep_matured"):
                case Err() as e:
                    return e
                case Ok(listing):
                    pass
            if listing.market_id != market_id:
                continue
            match self._registry.get(tx, listing.cusip):
                case Err() as e:
                    return e
                case Ok(paper):
                    pass
            if not paper.is_matured(as_of.day):
                continue
            match self.withdraw(tx, listing.listing_id):
                case Err() as e:
                    return e
            withdrawn.append(listing)
        return Ok(tuple(withdrawn))

    # -- Snapshot queries (outside any transaction) --

    def active_listings(
        self, store: LedgerStore, market_id: str,
    ) -> Ok[tuple[PaperListing, ...]] | Err[PersistenceError]:
        match store.keys(LISTING_PREFIX):
            case Err() as e:
                return e
            case Ok(keys):
                pass
        listings: list[PaperListing] = []
        for key in keys:
            match store.get(key):
                case Ok(versioned) if isinstance(versioned.record, PaperListing):
                    if versioned.record.market_id == market_id:
                        listings.append(versioned.record)
                case Err() as e if e.error.code != "NOT_FOUND":
                    return e
        return Ok(tuple(listings))
