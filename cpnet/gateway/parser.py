"""Gateway parser -- raw transaction payloads to validated requests.

One parse_* function per transaction type, using the wire field names
(CUSIP, workingCurrency, papersToList, listingID, maturedPaper, ...).
Every parser is total: it returns Ok or Err, never raises, and reports
all missing or malformed fields in one ValidationError.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil.parser import isoparse

from cpnet.core.errors import FieldViolation, ValidationError
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


def _extract_str(raw: dict[str, object], key: str) -> str | None:
    val = raw.get(key)
    if isinstance(val, str):
        return val
    return None


def _extract_int(raw: dict[str, object], key: str) -> int | None:
    val = raw.get(key)
    if isinstance(val, bool):
        return None
    if isinstance(val, int):
        return val
    if isinstance(val, str):
        try:
            return int(val)
        except ValueError:
            return None
    return None


def _extract_decimal(raw: dict[str, object], key: str) -> Decimal | None:
    val = raw.get(key)
    if isinstance(val, Decimal):
        return val
    if isinstance(val, (int, str)) and not isinstance(val, bool):
        try:
            return Decimal(str(val))
        except InvalidOperation:
            return None
    return None


def _extract_datetime(raw: dict[str, object], key: str) -> datetime | None:
    val = raw.get(key)
    if isinstance(val, datetime):
        return val
    if isinstance(val, str):
        try:
            return isoparse(val)
        except (ValueError, OverflowError):
            return None
    return None


def _require_str(raw: dict[str, object], key: str, violations: list[FieldViolation]) -> str:
    val = _extract_str(raw, key)
    if val is None:
        violations.append(FieldViolation(
            path=key, constraint="required string", actual_value=repr(raw.get(key)),
        ))
        return ""
    return val


def _timestamp(
    raw: dict[str, object], violations: list[FieldViolation],
) -> UtcDatetime:
    """Optional submission timestamp; defaults to now when absent."""
    if raw.get("timestamp") is None:
        return UtcDatetime.now()
    ts_raw = _extract_datetime(raw, "timestamp")
    if ts_raw is None:
        violations.append(FieldViolation(
            path="timestamp", constraint="must be an ISO 8601 datetime",
            actual_value=repr(raw.get("timestamp")),
        ))
        return UtcDatetime.now()
    match UtcDatetime.parse(ts_raw):
        case Ok(ts):
            return ts
        case Err(e):
            violations.append(FieldViolation(path="timestamp", constraint=e, actual_value=str(ts_raw)))
            return UtcDatetime.now()


def _parse_failed(fn: str, violations: list[FieldViolation]) -> Err[ValidationError]:
    return Err(ValidationError(
        message=f"{fn} failed: {len(violations)} field error(s)",
        code="GATEWAY_PARSE",
        timestamp=UtcDatetime.now(),
        source=f"gateway.parser.{fn}",
        fields=tuple(violations),
    ))


def _as_parse_error[T](
    fn: str, result: Ok[T] | Err[ValidationError],
) -> Ok[T] | Err[ValidationError]:
    """Re-tag request validation failures as parse failures of fn."""
    match result:
        case Err(e):
            return _parse_failed(fn, list(e.fields))
        case Ok():
            return result


def parse_create_paper(raw: dict[str, object]) -> Ok[CreatePaperRequest] | Err[ValidationError]:
    """CUSIP, ticker, maturity, workingCurrency, par, numberToCreate (default 1), issuer."""
    violations: list[FieldViolation] = []

    cusip = _require_str(raw, "CUSIP", violations)
    ticker = _require_str(raw, "ticker", violations)
    currency = _require_str(raw, "workingCurrency", violations)
    issuer = _require_str(raw, "issuer", violations)

    maturity = _extract_int(raw, "maturity")
    if maturity is None:
        violations.append(FieldViolation(
            path="maturity", constraint="required integer", actual_value=repr(raw.get("maturity")),
        ))
        maturity = 0

    par = _extract_decimal(raw, "par")
    if par is None:
        violations.append(FieldViolation(
            path="par", constraint="required numeric", actual_value=repr(raw.get("par")),
        ))
        par = Decimal("0")

    number_to_create = 1
    if raw.get("numberToCreate") is not None:
        parsed_n = _extract_int(raw, "numberToCreate")
        if parsed_n is None:
            violations.append(FieldViolation(
                path="numberToCreate", constraint="must be an integer",
                actual_value=repr(raw.get("numberToCreate")),
            ))
        else:
            number_to_create = parsed_n

    ts = _timestamp(raw, violations)
    if violations:
        return _parse_failed("parse_create_paper", violations)

    return _as_parse_error("parse_create_paper", CreatePaperRequest.create(
        cusip=cusip,
        ticker=ticker,
        maturity=maturity,
        working_currency=currency,
        par=par,
        issuer=issuer,
        number_to_create=number_to_create,
        submitted_at=ts,
    ))


def parse_list_on_market(raw: dict[str, object]) -> Ok[ListOnMarketRequest] | Err[ValidationError]:
    """market, discount, papersToList (list of CUSIPs)."""
    violations: list[FieldViolation] = []

    market = _require_str(raw, "market", violations)

    discount = _extract_decimal(raw, "discount")
    if discount is None:
        violations.append(FieldViolation(
            path="discount", constraint="required numeric", actual_value=repr(raw.get("discount")),
        ))
        discount = Decimal("0")

    papers_raw = raw.get("papersToList")
    papers: list[str] = []
    if not isinstance(papers_raw, (list, tuple)):
        violations.append(FieldViolation(
            path="papersToList", constraint="required list of CUSIPs", actual_value=repr(papers_raw),
        ))
    else:
        for i, item in enumerate(papers_raw):
            if isinstance(item, str):
                papers.append(item)
            else:
                violations.append(FieldViolation(
                    path=f"papersToList[{i}]", constraint="must be a CUSIP string",
                    actual_value=repr(item),
                ))

    ts = _timestamp(raw, violations)
    if violations:
        return _parse_failed("parse_list_on_market", violations)

    return _as_parse_error("parse_list_on_market", ListOnMarketRequest.create(
        market=market, discount=discount, papers_to_list=tuple(papers), submitted_at=ts,
    ))


def parse_purchase_paper(raw: dict[str, object]) -> Ok[PurchasePaperRequest] | Err[ValidationError]:
    """market, listingID, account."""
    violations: list[FieldViolation] = []
    market = _require_str(raw, "market", violations)
    listing_id = _require_str(raw, "listingID", violations)
    account = _require_str(raw, "account", violations)
    ts = _timestamp(raw, violations)
    if violations:
        return _parse_failed("parse_purchase_paper", violations)
    return _as_parse_error("parse_purchase_paper", PurchasePaperRequest.create(
        market=market, listing_id=listing_id, account=account, submitted_at=ts,
    ))


def parse_redeem_paper(raw: dict[str, object]) -> Ok[RedeemPaperRequest] | Err[ValidationError]:
    violations: list[FieldViolation] = []
    matured_paper = _require_str(raw, "maturedPaper", violations)
    ts = _timestamp(raw, violations)
    if violations:
        return _parse_failed("parse_redeem_paper", violations)
    return _as_parse_error("parse_redeem_paper", RedeemPaperRequest.create(
        matured_paper=matured_paper, submitted_at=ts,
    ))


def parse_assign_did(raw: dict[str, object]) -> Ok[AssignDidRequest] | Err[ValidationError]:
    """targetCompany, publicdid {scheme, method, identifier}."""
    violations: list[FieldViolation] = []
    target = _require_str(raw, "targetCompany", violations)

    did_raw = raw.get("publicdid")
    parts = {"scheme": "", "method": "", "identifier": ""}
    if not isinstance(did_raw, dict):
        violations.append(FieldViolation(
            path="publicdid", constraint="required object {scheme, method, identifier}",
            actual_value=repr(did_raw),
        ))
    else:
        for part in parts:
            val = did_raw.get(part)
            if isinstance(val, str):
                parts[part] = val
            else:
                violations.append(FieldViolation(
                    path=f"publicdid.{part}", constraint="required string", actual_value=repr(val),
                ))

    ts = _timestamp(raw, violations)
    if violations:
        return _parse_failed("parse_assign_did", violations)

    return _as_parse_error("parse_assign_did", AssignDidRequest.create(
        target_company=target,
        publicdid=PublicDid(**parts),
        submitted_at=ts,
    ))


def create_paper_to_dict(request: CreatePaperRequest) -> dict[str, Any]:
    """Serialize a CreatePaperRequest back to wire field names."""
    return {
        "CUSIP": request.cusip.value,
        "ticker": request.ticker.value,
        "maturity": request.maturity,
        "workingCurrency": request.working_currency.value,
        "par": str(request.par),
        "numberToCreate": request.number_to_create,
        "issuer": request.issuer.value,
        "timestamp": request.submitted_at.value.isoformat(),
    }
