"""Commercial paper: economic terms, lifecycle states and transitions.

PAPER_TRANSITIONS is the complete set of legal status edges. REDEEMED has
no outgoing edge, which is what makes redemption happen exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, localcontext
from enum import Enum
from typing import final

from cpnet.core.errors import (
    ConflictReason,
    FieldViolation,
    StateConflictError,
    ValidationError,
    conflict,
    invalid,
)
from cpnet.core.identifiers import Cusip
from cpnet.core.money import (
    CPNET_DECIMAL_CONTEXT,
    Money,
    NonEmptyStr,
    NonNegativeDecimal,
    PositiveDecimal,
    validate_currency,
)
from cpnet.core.result import Err, Ok
from cpnet.infra.config import DiscountConvention

MIN_MATURITY_DAYS = 1
MAX_MATURITY_DAYS = 270


class PaperStatus(Enum):
    ISSUED = "Issued"
    LISTED = "Listed"
    OWNED = "Owned"
    REDEEMED = "Redeemed"


type TransitionTable = frozenset[tuple[PaperStatus, PaperStatus]]

PAPER_TRANSITIONS: TransitionTable = frozenset({
    (PaperStatus.ISSUED, PaperStatus.LISTED),
    (PaperStatus.ISSUED, PaperStatus.REDEEMED),
    (PaperStatus.LISTED, PaperStatus.OWNED),  # sold, or withdrawn by a non-issuer owner
    (PaperStatus.LISTED, PaperStatus.ISSUED),  # withdrawn while still with the issuer
    (PaperStatus.LISTED, PaperStatus.REDEEMED),
    (PaperStatus.OWNED, PaperStatus.LISTED),
    (PaperStatus.OWNED, PaperStatus.REDEEMED),
})


def check_transition(
    cusip: str, from_state: PaperStatus, to_state: PaperStatus,
) -> Ok[None] | Err[StateConflictError]:
    """Validate a status change; the error reason names the blocking state."""
    if (from_state, to_state) in PAPER_TRANSITIONS:
        return Ok(None)
    match (from_state, to_state):
        case (PaperStatus.REDEEMED, _):
            reason = ConflictReason.ALREADY_REDEEMED
        case (PaperStatus.LISTED, PaperStatus.LISTED):
            reason = ConflictReason.ALREADY_LISTED
        case (_, PaperStatus.OWNED):
            reason = ConflictReason.NOT_LISTED
        case _:
            reason = ConflictReason.ILLEGAL_TRANSITION
    return Err(conflict(
        cusip,
        reason,
        f"Invalid transition for {cusip}: {from_state.value} -> {to_state.value}",
        "instrument.paper.check_transition",
    ))


@final
@dataclass(frozen=True, slots=True)
class PaperTerms:
    """Economic terms shared by every unit of one CreatePaper request."""

    cusip: Cusip
    ticker: NonEmptyStr
    currency: NonEmptyStr
    par: PositiveDecimal
    maturity_days: int
    number_to_create: int = 1

    def __post_init__(self) -> None:
        if not MIN_MATURITY_DAYS <= self.maturity_days <= MAX_MATURITY_DAYS:
            raise TypeError(
                f"maturity_days must be {MIN_MATURITY_DAYS}-{MAX_MATURITY_DAYS}, "
                f"got {self.maturity_days}"
            )
        if self.number_to_create < 1:
            raise TypeError(f"number_to_create must be >= 1, got {self.number_to_create}")
        if self.number_to_create > 1 and not self.cusip.fits_unit_suffix(self.number_to_create):
            raise TypeError(f"CUSIP {self.cusip.value} cannot carry {self.number_to_create} unit suffixes")

    @staticmethod
    def create(
        *,
        cusip: str,
        ticker: str,
        currency: str,
        par: Decimal,
        maturity_days: int,
        number_to_create: int = 1,
    ) -> Ok[PaperTerms] | Err[ValidationError]:
        """Validate all fields, collecting every violation."""
        violations: list[FieldViolation] = []

        parsed_cusip: Cusip | None = None
        match Cusip.parse(cusip):
            case Ok(c):
                parsed_cusip = c
            case Err(e):
                violations.append(FieldViolation("CUSIP", e, repr(cusip)))

        if not ticker:
            violations.append(FieldViolation("ticker", "must be non-empty", repr(ticker)))

        if not validate_currency(currency):
            violations.append(FieldViolation(
                "workingCurrency", "must be a known ISO 4217 code", repr(currency),
            ))

        parsed_par: PositiveDecimal | None = None
        match PositiveDecimal.parse(par):
            case Ok(p):
                parsed_par = p
            case Err(e):
                violations.append(FieldViolation("par", e, str(par)))

        if not MIN_MATURITY_DAYS <= maturity_days <= MAX_MATURITY_DAYS:
            violations.append(FieldViolation(
                "maturity",
                f"must be {MIN_MATURITY_DAYS}-{MAX_MATURITY_DAYS} days",
                str(maturity_days),
            ))

        if number_to_create < 1:
            violations.append(FieldViolation(
                "numberToCreate", "must be >= 1", str(number_to_create),
            ))
        elif (
            number_to_create > 1
            and parsed_cusip is not None
            and not parsed_cusip.fits_unit_suffix(number_to_create)
        ):
            violations.append(FieldViolation(
                "CUSIP",
                f"too long to carry a unit suffix for {number_to_create} units",
                repr(cusip),
            ))

        if violations or parsed_cusip is None or parsed_par is None:
            return Err(invalid(
                f"Invalid paper terms: {len(violations)} field error(s)",
                "INVALID_TERMS",
                "instrument.paper.PaperTerms.create",
                *violations,
            ))
        return Ok(PaperTerms(
            cusip=parsed_cusip,
            ticker=NonEmptyStr(value=ticker),
            currency=NonEmptyStr(value=currency),
            par=parsed_par,
            maturity_days=maturity_days,
            number_to_create=number_to_create,
        ))

    def unit_cusips(self) -> tuple[Cusip, ...]:
        """One CUSIP per unit: the supplied one, or suffixed -001..-N."""
        if self.number_to_create == 1:
            return (self.cusip,)
        return tuple(self.cusip.with_unit_suffix(n) for n in range(1, self.number_to_create + 1))


@final
@dataclass(frozen=True, slots=True)
class CommercialPaper:
    """One paper instrument as stored in the ledger.

    issuer, owner and owning_account are identifiers of Company and Account
    records, not embedded objects.
    """

    cusip: Cusip
    ticker: NonEmptyStr
    currency: NonEmptyStr
    par: PositiveDecimal
    maturity_days: int
    issuer: str
    owner: str
    owning_account: str
    issue_date: date
    status: PaperStatus = PaperStatus.ISSUED
    listing_id: str | None = None

    def __post_init__(self) -> None:
        if (self.status is PaperStatus.LISTED) != (self.listing_id is not None):
            raise TypeError(
                f"listing_id must be set exactly when LISTED, "
                f"got status={self.status.value} listing_id={self.listing_id!r}"
            )

    @property
    def maturity_date(self) -> date:
        return self.issue_date + timedelta(days=self.maturity_days)

    @property
    def par_value(self) -> Money:
        return Money(amount=self.par.value, currency=self.currency)

    def days_to_maturity(self, as_of: date) -> int:
        return (self.maturity_date - as_of).days

    def is_matured(self, as_of: date) -> bool:
        return as_of >= self.maturity_date

    def unlisted_status(self) -> PaperStatus:
        """Status after leaving a listing without a sale."""
        return PaperStatus.ISSUED if self.owner == self.issuer else PaperStatus.OWNED


def validate_discount(
    discount: Decimal, convention: DiscountConvention,
) -> Ok[NonNegativeDecimal] | Err[ValidationError]:
    """Discount must be >= 0, and < 1 when it is a fraction of par."""
    source = "instrument.paper.validate_discount"
    match NonNegativeDecimal.parse(discount):
        case Err(e):
            return Err(invalid(
                f"Invalid discount: {e}", "INVALID_DISCOUNT", source,
                FieldViolation("discount", "must be >= 0", str(discount)),
            ))
        case Ok(d):
            pass
    if convention is DiscountConvention.FRACTION_OF_PAR and d.value >= 1:
        return Err(invalid(
            f"Discount {discount} must be < 1 as a fraction of par",
            "INVALID_DISCOUNT", source,
            FieldViolation("discount", "must be in [0, 1)", str(discount)),
        ))
    return Ok(d)


def settlement_price(
    paper: CommercialPaper,
    discount: Decimal,
    convention: DiscountConvention,
) -> Ok[Money] | Err[ValidationError]:
    """Price paid for a listed paper, rounded to the currency minor unit.

    FRACTION_OF_PAR: par * (1 - discount). ABSOLUTE_AMOUNT: par - discount.
    The result must be strictly positive.
    """
    match validate_discount(discount, convention):
        case Err() as e:
            return e
        case Ok(d):
            pass
    with localcontext(CPNET_DECIMAL_CONTEXT):
        if convention is DiscountConvention.FRACTION_OF_PAR:
            amount = paper.par.value * (Decimal(1) - d.value)
        else:
            amount = paper.par.value - d.value
    price = Money(amount=amount, currency=paper.currency).round_to_minor_unit()
    if price.amount <= 0:
        return Err(invalid(
            f"Settlement price for {paper.cusip.value} must be > 0, got {price.amount}",
            "INVALID_DISCOUNT", "instrument.paper.settlement_price",
            FieldViolation("discount", "must leave a positive price", str(discount)),
        ))
    return Ok(price)
