"""Gateway types -- validated transaction requests, input to the Trading Engine.

Each request carries the submitting client's timestamp. Business time
(maturity checks, listing time) always comes from the engine's clock;
submitted_at only seeds the ids of the events the request produces.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import final

from cpnet.core.errors import FieldViolation, ValidationError
from cpnet.core.identifiers import Cusip
from cpnet.core.money import NonEmptyStr, NonNegativeDecimal
from cpnet.core.result import Err, Ok
from cpnet.core.types import UtcDatetime


def _parse_nonempty(
    raw: str, path: str, violations: list[FieldViolation],
) -> NonEmptyStr | None:
    match NonEmptyStr.parse(raw):
        case Ok(v):
            return v
        case Err(_):
            violations.append(FieldViolation(
                path=path, constraint="must be non-empty", actual_value=repr(raw),
            ))
            return None


def _rejected(
    request_type: str, violations: list[FieldViolation], timestamp: UtcDatetime,
) -> Err[ValidationError]:
    return Err(ValidationError(
        message=f"{request_type} validation failed: {len(violations)} violation(s)",
        code="GATEWAY_VALIDATION",
        timestamp=timestamp,
        source=f"gateway.types.{request_type}.create",
        fields=tuple(violations),
    ))


@final
@dataclass(frozen=True, slots=True)
class CreatePaperRequest:
    """Shape-checked CreatePaper. Range checks on maturity and par happen at issue."""

    cusip: Cusip
    ticker: NonEmptyStr
    maturity: int
    working_currency: NonEmptyStr
    par: Decimal
    number_to_create: int
    issuer: NonEmptyStr
    submitted_at: UtcDatetime

    @staticmethod
    def create(
        *,
        cusip: str,
        ticker: str,
        maturity: int,
        working_currency: str,
        par: Decimal,
        issuer: str,
        submitted_at: UtcDatetime,
        number_to_create: int = 1,
    ) -> Ok[CreatePaperRequest] | Err[ValidationError]:
        violations: list[FieldViolation] = []

        parsed_cusip: Cusip | None = None
        match Cusip.parse(cusip):
            case Ok(c):
                parsed_cusip = c
            case Err(e):
                violations.append(FieldViolation(path="CUSIP", constraint=e, actual_value=repr(cusip)))
        tkr = _parse_nonempty(ticker, "ticker", violations)
        cur = _parse_nonempty(working_currency, "workingCurrency", violations)
        iss = _parse_nonempty(issuer, "issuer", violations)

        if maturity < 0:
            violations.append(FieldViolation(
                path="maturity", constraint="must be >= 0", actual_value=str(maturity),
            ))
        if not par.is_finite() or par < 0:
            violations.append(FieldViolation(
                path="par", constraint="must be a finite Decimal >= 0", actual_value=str(par),
            ))
        if number_to_create < 1:
            violations.append(FieldViolation(
                path="numberToCreate", constraint="must be >= 1",
                actual_value=str(number_to_create),
            ))

        if violations:
            return _rejected("CreatePaperRequest", violations, submitted_at)
        assert parsed_cusip is not None and tkr is not None and cur is not None and iss is not None

        return Ok(CreatePaperRequest(
            cusip=parsed_cusip,
            ticker=tkr,
            maturity=maturity,
            working_currency=cur,
            par=par,
            number_to_create=number_to_create,
            issuer=iss,
            submitted_at=submitted_at,
        ))


@final
@dataclass(frozen=True, slots=True)
class ListOnMarketRequest:
    market: NonEmptyStr
    discount: NonNegativeDecimal
    papers_to_list: tuple[str, ...]
    submitted_at: UtcDatetime

    @staticmethod
    def create(
        *,
        market: str,
        discount: Decimal,
        papers_to_list: tuple[str, ...],
        submitted_at: UtcDatetime,
    ) -> Ok[ListOnMarketRequest] | Err[ValidationError]:
        violations: list[FieldViolation] = []
        mkt = _parse_nonempty(market, "market", violations)

        disc: NonNegativeDecimal | None = None
        match NonNegativeDecimal.parse(discount):
            case Ok(d):
                disc = d
            case Err(e):
                violations.append(FieldViolation(path="discount", constraint=e, actual_value=str(discount)))

        if not papers_to_list:
            violations.append(FieldViolation(
                path="papersToList", constraint="must name at least one paper",
                actual_value=repr(papers_to_list),
            ))
        for i, cusip in enumerate(papers_to_list):
            match Cusip.parse(cusip):
                case Err(e):
                    violations.append(FieldViolation(
                        path=f"papersToList[{i}]", constraint=e, actual_value=repr(cusip),
                    ))

        if violations:
            return _rejected("ListOnMarketRequest", violations, submitted_at)
        assert mkt is not None and disc is not None

        return Ok(ListOnMarketRequest(
            market=mkt,
            discount=disc,
            papers_to_list=tuple(Cusip.parse(c).unwrap().value for c in papers_to_list),
            submitted_at=submitted_at,
        ))


@final
@dataclass(frozen=True, slots=True)
class PurchasePaperRequest:
    market: NonEmptyStr
    listing_id: NonEmptyStr
    account: NonEmptyStr
    submitted_at: UtcDatetime

    @staticmethod
    def create(
        *, market: str, listing_id: str, account: str, submitted_at: UtcDatetime,
    ) -> Ok[PurchasePaperRequest] | Err[ValidationError]:
        violations: list[FieldViolation] = []
        mkt = _parse_nonempty(market, "market", violations)
        lid = _parse_nonempty(listing_id, "listingID", violations)
        acc = _parse_nonempty(account, "account", violations)
        if violations:
            return _rejected("PurchasePaperRequest", violations, submitted_at)
        assert mkt is not None and lid is not None and acc is not None
        return Ok(PurchasePaperRequest(
            market=mkt, listing_id=lid, account=acc, submitted_at=submitted_at,
        ))


@final
@dataclass(frozen=True, slots=True)
class RedeemPaperRequest:
    matured_paper: Cusip
    submitted_at: UtcDatetime

    @staticmethod
    def create(
        *, matured_paper: str, submitted_at: UtcDatetime,
    ) -> Ok[RedeemPaperRequest] | Err[ValidationError]:
        match Cusip.parse(matured_paper):
            case Err(e):
                return _rejected("RedeemPaperRequest", [
                    FieldViolation(path="maturedPaper", constraint=e, actual_value=repr(matured_paper)),
                ], submitted_at)
            case Ok(cusip):
                return Ok(RedeemPaperRequest(matured_paper=cusip, submitted_at=submitted_at))


@final
@dataclass(frozen=True, slots=True)
class PublicDid:
    """Unvalidated DID parts; the engine checks them when assigning."""

    scheme: str
    method: str
    identifier: str


@final
@dataclass(frozen=True, slots=True)
class AssignDidRequest:
    target_company: NonEmptyStr
    publicdid: PublicDid
    submitted_at: UtcDatetime

    @staticmethod
    def create(
        *, target_company: str, publicdid: PublicDid, submitted_at: UtcDatetime,
    ) -> Ok[AssignDidRequest] | Err[ValidationError]:
        violations: list[FieldViolation] = []
        company = _parse_nonempty(target_company, "targetCompany", violations)
        for part in ("scheme", "method", "identifier"):
            _parse_nonempty(getattr(publicdid, part), f"publicdid.{part}", violations)
        if violations:
            return _rejected("AssignDidRequest", violations, submitted_at)
        assert company is not None
        return Ok(AssignDidRequest(
            target_company=company, publicdid=publicdid, submitted_at=submitted_at,
        ))
