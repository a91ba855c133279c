"""Trading Engine -- business operations as atomic ledger transactions.

Every operation resolves the caller, validates its request, then runs one
body inside a LedgerTransaction:

    begin -> body(tx, now) -> write outbox events -> commit -> publish

A body Err rolls the transaction back and is returned unchanged. A commit
that fails its compare-and-swap re-runs the whole body on a fresh
transaction, up to TransactionPolicy.max_attempts, then surfaces
ConcurrentModificationError. Any exception raised mid-operation (including
cancellation) rolls back and propagates.

The engine holds no ledger state of its own.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import final

from cpnet.core.errors import (
    AuthorizationError,
    ConcurrentModificationError,
    ConflictReason,
    FieldViolation,
    PersistenceError,
    StateConflictError,
    TradingError,
    VersionConflictError,
    conflict,
    invalid,
)
from cpnet.core.identifiers import Did
from cpnet.core.money import Money
from cpnet.core.party import CallerIdentity
from cpnet.core.result import Err, Ok
from cpnet.core.serialization import canonical_bytes, content_hash
from cpnet.core.types import UtcDatetime
from cpnet.gateway.types import (
    AssignDidRequest,
    CreatePaperRequest,
    ListOnMarketRequest,
    PurchasePaperRequest,
    RedeemPaperRequest,
)
from cpnet.infra.config import LedgerPolicy, RedemptionFunding, TransactionPolicy
from cpnet.infra.protocols import EventBus, IdentityResolver, LedgerStore, LedgerTransaction
from cpnet.instrument.paper import CommercialPaper, PaperStatus, PaperTerms, settlement_price
from cpnet.ledger._store import exists, load
from cpnet.ledger.accounts import AccountLedger
from cpnet.ledger.events import (
    AssignDidEvent,
    CreatePaperEvent,
    EventPayload,
    LedgerEvent,
    ListOnMarketEvent,
    PurchasePaperEvent,
    RedeemPaperEvent,
    WithdrawListingEvent,
)
from cpnet.ledger.market import MarketBook
from cpnet.ledger.registry import PaperRegistry
from cpnet.ledger.types import Account, Company, PaperListing, company_key, event_key

logger = logging.getLogger(__name__)

type Payloads = tuple[EventPayload, ...]
type OperationBody = Callable[[LedgerTransaction, UtcDatetime], Ok[Payloads] | Err[TradingError]]


def _unauthorized(caller: CallerIdentity, resource: str, source: str) -> AuthorizationError:
    return AuthorizationError(
        message=f"{caller.participant_id.value} may not act for {resource}",
        code="NOT_AUTHORIZED",
        timestamp=UtcDatetime.now(),
        source=source,
        participant_id=caller.participant_id.value,
        resource=resource,
    )


def _request_seed(request: object) -> str:
    """Content hash of a gateway request; a resubmission of the same request shares it."""
    match content_hash(request):
        case Ok(digest):
            return digest
        case Err(e):
            raise TypeError(f"Cannot hash {type(request).__name__}: {e}")


@final
class TradingEngine:
    """Orchestrates Account Ledger, Paper Registry and Market Book."""

    def __init__(
        self,
        store: LedgerStore,
        identity: IdentityResolver,
        bus: EventBus,
        *,
        policy: LedgerPolicy | None = None,
        tx_policy: TransactionPolicy | None = None,
        clock: Callable[[], UtcDatetime] = UtcDatetime.now,
    ) -> None:
        self._store = store
        self._identity = identity
        self._bus = bus
        self._policy = policy or LedgerPolicy()
        self._tx_policy = tx_policy or TransactionPolicy()
        self._clock = clock
        self.accounts = AccountLedger(self._policy)
        self.registry = PaperRegistry(self._policy)
        self.market = MarketBook(self.registry, self._policy)

    # ------------------------------------------------------------------
    # Transaction loop
    # ------------------------------------------------------------------

    def _run_atomically(
        self, operation: str, seed: str, body: OperationBody,
    ) -> Ok[Payloads] | Err[TradingError]:
        attempts = self._tx_policy.max_attempts
        for attempt in range(1, attempts + 1):
            now = self._clock()
            tx = self._store.begin(self._tx_policy.timeout_s)
            try:
                match body(tx, now):
                    case Err(error) as failed:
                        tx.rollback()
                        logger.info("%s rejected: %s (%s)", operation, error.code, error.message)
                        return failed
                    case Ok(payloads):
                        pass
                match self._write_outbox(tx, operation, seed, now, payloads):
                    case Err() as e:
                        tx.rollback()
                        return e
                    case Ok(events):
                        pass
                committed = tx.commit()
            except BaseException:
                tx.rollback()
                logger.warning("%s aborted on %s; rolled back", operation, tx.tx_id)
                raise

            match committed:
                case Ok(_):
                    logger.info("%s committed on %s (attempt %d)", operation, tx.tx_id, attempt)
                    self._publish(events)
                    return Ok(payloads)
                case Err(VersionConflictError() as vc):
                    logger.warning(
                        "%s conflict on %s (attempt %d/%d): %s",
                        operation, vc.entity_id, attempt, attempts, vc.message,
                    )
                    if self._tx_policy.retry_backoff_ms and attempt < attempts:
                        time.sleep(attempt * self._tx_policy.retry_backoff_ms / 1000)
                case Err(PersistenceError()) as store_failure:
                    logger.error("%s failed to commit: %s", operation, store_failure.error.message)
                    return store_failure

        return Err(ConcurrentModificationError(
            message=f"{operation} still conflicting after {attempts} attempt(s)",
            code="CONCURRENT_MODIFICATION",
            timestamp=UtcDatetime.now(),
            source=f"ledger.engine.{operation}",
            attempts=attempts,
        ))

    def _write_outbox(
        self,
        tx: LedgerTransaction,
        operation: str,
        seed: str,
        now: UtcDatetime,
        payloads: Payloads,
    ) -> Ok[tuple[LedgerEvent, ...]] | Err[PersistenceError]:
        """Stage one event:<id> record per payload.

        Ids are derived from operation, seed and position, so a retried
        attempt reproduces them. An id already present in the outbox belongs
        to another committed operation; a counter is appended until the id
        is free, and the read of that key joins the transaction's read set.
        """
        events: list[LedgerEvent] = []
        for i, payload in enumerate(payloads):
            base = f"{operation}|{seed}|{i}"
            event = LedgerEvent.create(payload, now, base)
            collisions = 0
            while True:
                match exists(tx, event_key(event.event_id)):
                    case Err() as e:
                        return e
                    case Ok(False):
                        break
                    case Ok(True):
                        collisions += 1
                        event = LedgerEvent.create(payload, now, f"{base}|{collisions}")
            match tx.put(event_key(event.event_id), event):
                case Err() as e:
                    return e
            events.append(event)
        return Ok(tuple(events))

    def _publish(self, events: tuple[LedgerEvent, ...]) -> None:
        """Best effort; the committed outbox record remains for redelivery."""
        for event in events:
            match canonical_bytes(event):
                case Err(e):
                    logger.error("Cannot serialize event %s: %s", event.event_id, e)
                    continue
                case Ok(value):
                    pass
            try:
                result = self._bus.publish(event.topic, event.key, value)
            except Exception:
                logger.exception("Publishing %s to %s raised", event.event_id, event.topic)
                continue
            match result:
                case Err(error):
                    logger.error(
                        "Publishing %s to %s failed: %s", event.event_id, event.topic, error.message,
                    )

    def _caller(self) -> Ok[CallerIdentity] | Err[AuthorizationError]:
        return self._identity.resolve_caller()

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(
        self, request: CreatePaperRequest,
    ) -> Ok[tuple[CreatePaperEvent, ...]] | Err[TradingError]:
        """Create the requested papers on the issuer's books."""
        source = "ledger.engine.issue"
        match self._caller():
            case Err() as e:
                return e
            case Ok(caller):
                pass
        issuer = request.issuer.value
        if not caller.can_act_for_company(issuer):
            return Err(_unauthorized(caller, issuer, source))
        match PaperTerms.create(
            cusip=request.cusip.value,
            ticker=request.ticker.value,
            currency=request.working_currency.value,
            par=request.par,
            maturity_days=request.maturity,
            number_to_create=request.number_to_create,
        ):
            case Err() as e:
                return e
            case Ok(terms):
                pass

        def body(tx: LedgerTransaction, now: UtcDatetime) -> Ok[Payloads] | Err[TradingError]:
            return self.registry.issue(tx, terms, issuer, now.day).map(
                lambda papers: tuple(CreatePaperEvent(paper=p) for p in papers),
            )

        return self._run_atomically("issue", _request_seed(request), body).map(
            lambda payloads: tuple(p for p in payloads if isinstance(p, CreatePaperEvent)),
        )

    # ------------------------------------------------------------------
    # ListOnMarket
    # ------------------------------------------------------------------

    def list_on_market(
        self, request: ListOnMarketRequest,
    ) -> Ok[ListOnMarketEvent] | Err[TradingError]:
        """List papers on a market; per-paper failures are reported, not raised.

        The caller must be authorized for the owner of every known paper in
        the request, otherwise nothing is listed.
        """
        source = "ledger.engine.list_on_market"
        match self._caller():
            case Err() as e:
                return e
            case Ok(caller):
                pass
        market_id = request.market.value

        def body(tx: LedgerTransaction, now: UtcDatetime) -> Ok[Payloads] | Err[TradingError]:
            for cusip in request.papers_to_list:
                match self.registry.get(tx, cusip):
                    case Ok(paper) if not caller.can_act_for_company(paper.owner):
                        return Err(_unauthorized(caller, f"{paper.owner} ({cusip})", source))
                    case Err(PersistenceError() as e):
                        return Err(e)
            match self.market.list(tx, market_id, request.papers_to_list, request.discount.value, now):
                case Err() as e:
                    return e
                case Ok(batch):
                    pass
            for cusip, error in batch.rejected.items():
                logger.info("list_on_market %s: %s rejected (%s)", market_id, cusip, error.code)
            return Ok((ListOnMarketEvent(
                market=market_id, listings=batch.listed, rejected=batch.rejected,
            ),))

        return self._run_atomically("list_on_market", _request_seed(request), body).map(
            lambda payloads: payloads[0],
        )

    # ------------------------------------------------------------------
    # PurchasePaper
    # ------------------------------------------------------------------

    def purchase(
        self, request: PurchasePaperRequest,
    ) -> Ok[PurchasePaperEvent] | Err[TradingError]:
        """Buy a listed paper with cash from request.account.

        take -> price -> transfer -> transfer_ownership, all in one
        transaction: a failed cash leg leaves the listing and ownership as
        they were.
        """
        source = "ledger.engine.purchase"
        match self._caller():
            case Err() as e:
                return e
            case Ok(caller):
                pass
        buyer_account_id = request.account.value

        def body(tx: LedgerTransaction, now: UtcDatetime) -> Ok[Payloads] | Err[TradingError]:
            match self.accounts.get(tx, buyer_account_id):
                case Err() as e:
                    return e
                case Ok(buyer_account):
                    pass
            if not caller.can_act_for_account(buyer_account_id, buyer_account.company):
                return Err(_unauthorized(caller, buyer_account_id, source))

            match self.market.take(tx, request.market.value, request.listing_id.value):
                case Err() as e:
                    return e
                case Ok(listing):
                    pass
            match self.registry.get(tx, listing.cusip):
                case Err() as e:
                    return e
                case Ok(paper):
                    pass
            if paper.is_matured(now.day):
                return Err(conflict(
                    listing.cusip, ConflictReason.PAPER_MATURED,
                    f"Paper {listing.cusip} matured on {paper.maturity_date}", source,
                ))
            if buyer_account_id == listing.seller_account:
                return Err(invalid(
                    f"Account {buyer_account_id} is the seller account of {listing.listing_id}",
                    "SELF_TRANSFER", source,
                    FieldViolation("account", "must differ from the seller account", buyer_account_id),
                ))
            match settlement_price(paper, listing.discount.value, self._policy.discount_convention):
                case Err() as e:
                    return e
                case Ok(price):
                    pass
            match self.accounts.transfer(tx, buyer_account_id, listing.seller_account, price):
                case Err() as e:
                    return e
            match self.registry.transfer_ownership(
                tx, listing.cusip, buyer_account.company, buyer_account_id, listing,
            ):
                case Err() as e:
                    return e
                case Ok(sold):
                    pass
            return Ok((PurchasePaperEvent(
                paper=sold, listing=listing, buyer_account=buyer_account_id, settlement=price,
            ),))

        return self._run_atomically("purchase", _request_seed(request), body).map(
            lambda payloads: payloads[0],
        )

    # ------------------------------------------------------------------
    # RedeemPaper
    # ------------------------------------------------------------------

    def redeem(self, request: RedeemPaperRequest) -> Ok[RedeemPaperEvent] | Err[TradingError]:
        """Redeem a matured paper at par for its current holder."""
        source = "ledger.engine.redeem"
        match self._caller():
            case Err() as e:
                return e
            case Ok(caller):
                pass
        cusip = request.matured_paper.value

        def body(tx: LedgerTransaction, now: UtcDatetime) -> Ok[Payloads] | Err[TradingError]:
            match self.registry.get(tx, cusip):
                case Err() as e:
                    return e
                case Ok(paper):
                    pass
            # A redeemed paper is back with its issuer; the former holder still gets ALREADY_REDEEMED.
            authorized = caller.can_act_for_company(paper.owner) or caller.can_act_for_company(paper.issuer)
            if not authorized and paper.status is not PaperStatus.REDEEMED:
                return Err(_unauthorized(caller, f"{paper.owner} ({cusip})", source))
            match self.registry.redeem(tx, cusip, now.day):
                case Err() as e:
                    return e
                case Ok(redemption):
                    pass

            payloads: list[EventPayload] = []
            listing_id = redemption.withdrawn_listing_id
            if listing_id is not None and self._policy.withdraw_on_redemption:
                match self.market.withdraw(tx, listing_id):
                    case Err() as e:
                        return e
                    case Ok(PaperListing() as withdrawn):
                        payloads.append(WithdrawListingEvent(listing=withdrawn, reason="Redeemed"))

            match self._pay_par(tx, redemption.paper, redemption.holder_account, redemption.payout):
                case Err() as e:
                    return e
            payloads.append(RedeemPaperEvent(
                matured_paper=redemption.paper,
                holder=redemption.holder,
                holder_account=redemption.holder_account,
                payout=redemption.payout,
            ))
            return Ok(tuple(payloads))

        return self._run_atomically("redeem", _request_seed(request), body).map(
            lambda payloads: payloads[-1],
        )

    def _pay_par(
        self,
        tx: LedgerTransaction,
        redeemed: CommercialPaper,
        holder_account: str,
        payout: Money,
    ) -> Ok[object] | Err[TradingError]:
        match self._policy.redemption_funding:
            case RedemptionFunding.CREDIT_OWNER:
                return self.accounts.credit(tx, holder_account, payout)
            case RedemptionFunding.ISSUER_FUNDED:
                issuing_account = redeemed.owning_account
                if issuing_account == holder_account:
                    return Ok(None)
                return self.accounts.transfer(tx, issuing_account, holder_account, payout)

    # ------------------------------------------------------------------
    # AssignDid
    # ------------------------------------------------------------------

    def assign_did(self, request: AssignDidRequest) -> Ok[AssignDidEvent] | Err[TradingError]:
        """Set the public DID of a company (did:sov only)."""
        source = "ledger.engine.assign_did"
        match self._caller():
            case Err() as e:
                return e
            case Ok(caller):
                pass
        company_symbol = request.target_company.value
        if not caller.can_act_for_company(company_symbol):
            return Err(_unauthorized(caller, company_symbol, source))
        parts = request.publicdid
        match Did.create(parts.scheme, parts.method, parts.identifier):
            case Err(e):
                return Err(invalid(
                    f"Invalid DID: {e}", "INVALID_DID", source,
                    FieldViolation(
                        "publicdid", e, f"{parts.scheme}:{parts.method}:{parts.identifier}",
                    ),
                ))
            case Ok(did):
                pass

        def body(tx: LedgerTransaction, now: UtcDatetime) -> Ok[Payloads] | Err[TradingError]:
            match load(tx, company_key(company_symbol), Company, source):
                case Err() as e:
                    return e
                case Ok(company):
                    pass
            match tx.put(company_key(company_symbol), replace(company, did=did)):
                case Err() as e:
                    return e
            return Ok((AssignDidEvent(company=company_symbol, did=did),))

        return self._run_atomically("assign_did", _request_seed(request), body).map(
            lambda payloads: payloads[0],
        )

    # ------------------------------------------------------------------
    # Withdrawal
    # ------------------------------------------------------------------

    def withdraw_listing(
        self, market_id: str, listing_id: str,
    ) -> Ok[WithdrawListingEvent | None] | Err[TradingError]:
        """Owner withdraws a listing. Ok(None) when the listing is already gone."""
        source = "ledger.engine.withdraw_listing"
        match self._caller():
            case Err() as e:
                return e
            case Ok(caller):
                pass

        def body(tx: LedgerTransaction, now: UtcDatetime) -> Ok[Payloads] | Err[TradingError]:
            match self.market.match(tx, market_id, listing_id):
                case Err(StateConflictError(reason=ConflictReason.LISTING_NOT_FOUND)):
                    return Ok(())
                case Err() as e:
                    return e
                case Ok(listing):
                    pass
            if not caller.can_act_for_company(listing.seller):
                return Err(_unauthorized(caller, listing.seller, source))
            match self.market.withdraw(tx, listing_id):
                case Err() as e:
                    return e
            return Ok((WithdrawListingEvent(listing=listing, reason="Owner"),))

        seed = f"{market_id}|{listing_id}|{self._clock().value.isoformat()}"
        return self._run_atomically("withdraw_listing", seed, body).map(
            lambda payloads: payloads[0] if payloads else None,
        )

    def withdraw_matured_listings(
        self, market_id: str,
    ) -> Ok[tuple[WithdrawListingEvent, ...]] | Err[TradingError]:
        """Remove every listing on market_id whose paper has matured."""
        match self._caller():
            case Err() as e:
                return e

        def body(tx: LedgerTransaction, now: UtcDatetime) -> Ok[Payloads] | Err[TradingError]:
            return self.market.sweep_matured(tx, market_id, now).map(
                lambda swept: tuple(WithdrawListingEvent(listing=lst, reason="Matured") for lst in swept),
            )

        seed = f"{market_id}|{self._clock().value.isoformat()}"
        return self._run_atomically("withdraw_matured_listings", seed, body).map(
            lambda payloads: tuple(p for p in payloads if isinstance(p, WithdrawListingEvent)),
        )

    # ------------------------------------------------------------------
    # Snapshot queries
    # ------------------------------------------------------------------

    def get_paper(self, cusip: str) -> Ok[CommercialPaper] | Err[StateConflictError | PersistenceError]:
        tx = self._store.begin()
        try:
            return self.registry.get(tx, cusip)
        finally:
            tx.rollback()

    def get_account(self, account_id: str) -> Ok[Account] | Err[StateConflictError | PersistenceError]:
        tx = self._store.begin()
        try:
            return self.accounts.get(tx, account_id)
        finally:
            tx.rollback()

    def active_listings(self, market_id: str) -> Ok[tuple[PaperListing, ...]] | Err[PersistenceError]:
        return self.market.active_listings(self._store, market_id)

    def papers_owned_by(self, company: str) -> Ok[tuple[CommercialPaper, ...]] | Err[PersistenceError]:
        return self.registry.papers_owned_by(self._store, company)

