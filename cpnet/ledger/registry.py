"""Paper Registry -- owner of every paper's attributes and lifecycle state.

All status changes go through check_transition against PAPER_TRANSITIONS.
Ownership may only change inside a matched purchase: transfer_ownership
requires the paper to be LISTED under the listing being consumed.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import final

from cpnet.core.errors import (
    ConflictReason,
    CurrencyMismatchError,
    FieldViolation,
    PersistenceError,
    StateConflictError,
    ValidationError,
    conflict,
    invalid,
)
from cpnet.core.money import Money
from cpnet.core.result import Err, Ok
from cpnet.core.types import UtcDatetime
from cpnet.infra.config import LedgerPolicy
from cpnet.infra.protocols import LedgerStore, LedgerTransaction
from cpnet.instrument.paper import CommercialPaper, PaperStatus, PaperTerms, check_transition
from cpnet.ledger._store import exists, load
from cpnet.ledger.types import (
    PAPER_PREFIX,
    Account,
    Company,
    PaperListing,
    account_key,
    company_key,
    paper_key,
)

type RegistryError = (
    ValidationError | StateConflictError | CurrencyMismatchError | PersistenceError
)


@final
@dataclass(frozen=True, slots=True)
class Redemption:
    """A redeemed paper and who is owed its par value."""

    prior: CommercialPaper
    paper: CommercialPaper
    payout: Money

    @property
    def holder(self) -> str:
        return self.prior.owner

    @property
    def holder_account(self) -> str:
        return self.prior.owning_account

    @property
    def withdrawn_listing_id(self) -> str | None:
        return self.prior.listing_id


@final
class PaperRegistry:
    """Stateless service over CommercialPaper records."""

    def __init__(self, policy: LedgerPolicy | None = None) -> None:
        self._policy = policy or LedgerPolicy()

    def get(
        self, tx: LedgerTransaction, cusip: str,
    ) -> Ok[CommercialPaper] | Err[StateConflictError | PersistenceError]:
        return load(tx, paper_key(cusip), CommercialPaper, "ledger.registry.get")

    def _write(
        self, tx: LedgerTransaction, paper: CommercialPaper,
    ) -> Ok[CommercialPaper] | Err[PersistenceError]:
        return tx.put(paper_key(paper.cusip.value), paper).map(lambda _: paper)

    def _move_to(
        self, tx: LedgerTransaction, paper: CommercialPaper, status: PaperStatus, **changes: object,
    ) -> Ok[CommercialPaper] | Err[StateConflictError | PersistenceError]:
        match check_transition(paper.cusip.value, paper.status, status):
            case Err() as e:
                return e
        return self._write(tx, replace(paper, status=status, **changes))

    # -- Issue --

    def issue(
        self, tx: LedgerTransaction, terms: PaperTerms, issuer: str, as_of: date,
    ) -> Ok[tuple[CommercialPaper, ...]] | Err[RegistryError]:
        """Create number_to_create papers owned by the issuer's issuing account."""
        source = "ledger.registry.issue"
        violations: list[FieldViolation] = []
        if terms.maturity_days > self._policy.max_maturity_days:
            violations.append(FieldViolation(
                "maturity", f"must be <= {self._policy.max_maturity_days} days",
                str(terms.maturity_days),
            ))
        if terms.number_to_create > self._policy.max_units_per_issue:
            violations.append(FieldViolation(
                "numberToCreate", f"must be <= {self._policy.max_units_per_issue}",
                str(terms.number_to_create),
            ))
        if violations:
            return Err(invalid("Invalid paper terms", "INVALID_TERMS", source, *violations))

        match load(tx, company_key(issuer), Company, source):
            case Err() as e:
                return e
            case Ok(company):
                pass
        match load(tx, account_key(company.issuing_account_id), Account, source):
            case Err() as e:
                return e
            case Ok(issuing_account):
                pass
        if issuing_account.working_currency != terms.currency:
            return Err(CurrencyMismatchError(
                message=(
                    f"Issuing account {issuing_account.account_id.value} works in "
                    f"{issuing_account.working_currency.value}, paper is {terms.currency.value}"
                ),
                code="CURRENCY_MISMATCH",
                timestamp=UtcDatetime.now(),
                source=source,
                expected=issuing_account.working_currency.value,
                actual=terms.currency.value,
            ))

        created: list[CommercialPaper] = []
        for cusip in terms.unit_cusips():
            match exists(tx, paper_key(cusip.value)):
                case Err() as e:
                    return e
                case Ok(True):
                    return Err(conflict(
                        cusip.value, ConflictReason.ALREADY_EXISTS,
                        f"Paper {cusip.value} already exists", source,
                    ))
            paper = CommercialPaper(
                cusip=cusip,
                ticker=terms.ticker,
                currency=terms.currency,
                par=terms.par,
                maturity_days=terms.maturity_days,
                issuer=issuer,
                owner=issuer,
                owning_account=company.issuing_account_id,
                issue_date=as_of,
            )
            match self._write(tx, paper):
                case Err() as e:
                    return e
            created.append(paper)
        return Ok(tuple(created))

    # -- Listing state, driven by the Market Book --

    def mark_listed(
        self, tx: LedgerTransaction, cusip: str, listing_id: str,
    ) -> Ok[CommercialPaper] | Err[StateConflictError | PersistenceError]:
        match self.get(tx, cusip):
            case Err() as e:
                return e
            case Ok(paper):
                pass
        return self._move_to(tx, paper, PaperStatus.LISTED, listing_id=listing_id)

    def mark_unlisted(
        self, tx: LedgerTransaction, cusip: str,
    ) -> Ok[CommercialPaper] | Err[StateConflictError | PersistenceError]:
        match self.get(tx, cusip):
            case Err() as e:
                return e
            case Ok(paper):
                pass
        if paper.status is not PaperStatus.LISTED:
            return Ok(paper)
        return self._move_to(tx, paper, paper.unlisted_status(), listing_id=None)

    # -- Ownership --

    def transfer_ownership(
        self,
        tx: LedgerTransaction,
        cusip: str,
        new_owner: str,
        new_account: str,
        listing: PaperListing,
    ) -> Ok[CommercialPaper] | Err[RegistryError]:
        """Hand the paper to the buyer. Only valid for the listing being consumed."""
        source = "ledger.registry.transfer_ownership"
        match self.get(tx, cusip):
            case Err() as e:
                return e
            case Ok(paper):
                pass
        if paper.status is PaperStatus.REDEEMED:
            return Err(conflict(
                cusip, ConflictReason.ALREADY_REDEEMED, f"Paper {cusip} is redeemed", source,
            ))
        if paper.status is not PaperStatus.LISTED or paper.listing_id != listing.listing_id:
            return Err(conflict(
                cusip, ConflictReason.NOT_LISTED,
                f"Paper {cusip} is not listed under {listing.listing_id}", source,
            ))
        match load(tx, account_key(new_account), Account, source):
            case Err() as e:
                return e
            case Ok(account):
                pass
        if account.company != new_owner:
            return Err(invalid(
                f"Account {new_account} belongs to {account.company}, not {new_owner}",
                "ACCOUNT_OWNER_MISMATCH", source,
                FieldViolation("account", f"must belong to {new_owner}", new_account),
            ))
        return self._move_to(
            tx, paper, PaperStatus.OWNED,
            owner=new_owner, owning_account=new_account, listing_id=None,
        )

    # -- Redeem --

    def redeem(
        self, tx: LedgerTransaction, cusip: str, as_of: date,
    ) -> Ok[Redemption] | Err[RegistryError]:
        """Extinguish a matured paper and report who is owed par.

        The redeemed record returns to the issuer's books; the holder at
        redemption time is reported in the Redemption.
        """
        source = "ledger.registry.redeem"
        match self.get(tx, cusip):
            case Err() as e:
                return e
            case Ok(paper):
                pass
        if paper.status is PaperStatus.REDEEMED:
            return Err(conflict(
                cusip, ConflictReason.ALREADY_REDEEMED, f"Paper {cusip} is already redeemed", source,
            ))
        if not paper.is_matured(as_of):
            return Err(conflict(
                cusip, ConflictReason.NOT_MATURED,
                f"Paper {cusip} matures on {paper.maturity_date}, not redeemable on {as_of}",
                source,
            ))
        match load(tx, company_key(paper.issuer), Company, source):
            case Err() as e:
                return e
            case Ok(issuer):
                pass
        match self._move_to(
            tx, paper, PaperStatus.REDEEMED,
            owner=paper.issuer, owning_account=issuer.issuing_account_id, listing_id=None,
        ):
            case Err() as e:
                return e
            case Ok(redeemed):
                pass
        return Ok(Redemption(
            prior=paper,
            paper=redeemed,
            payout=paper.par_value,
        ))

    # -- Snapshot queries (outside any transaction) --

    def papers_owned_by(
        self, store: LedgerStore, company: str,
    ) -> Ok[tuple[CommercialPaper, ...]] | Err[PersistenceError]:
        """Unredeemed papers whose current owner is company."""
        match store.keys(PAPER_PREFIX):
            case Err() as e:
                return e
            case Ok(keys):
                pass
        owned: list[CommercialPaper] = []
        for key in keys:
            match store.get(key):
                case Ok(versioned) if isinstance(versioned.record, CommercialPaper):
                    paper = versioned.record
                    if paper.owner == company and paper.status is not PaperStatus.REDEEMED:
                        owned.append(paper)
                case Err() as e if e.error.code != "NOT_FOUND":
                    return e
        return Ok(tuple(owned))
