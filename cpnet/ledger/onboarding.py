"""Onboarding -- companies, accounts and markets.

Bootstrap data the trading operations rely on. Each function runs in its
own transaction and commits it; nothing here emits events.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from cpnet.core.errors import (
    ConflictReason,
    FieldViolation,
    PersistenceError,
    StateConflictError,
    ValidationError,
    VersionConflictError,
    conflict,
    invalid,
)
from cpnet.core.money import NonEmptyStr, NonNegativeDecimal, validate_currency
from cpnet.core.result import Err, Ok
from cpnet.infra.protocols import LedgerStore, LedgerTransaction
from cpnet.ledger._store import exists, load
from cpnet.ledger.types import (
    Account,
    Company,
    Market,
    account_key,
    company_key,
    market_key,
)

type OnboardingError = (
    ValidationError | StateConflictError | PersistenceError | VersionConflictError
)


def _check_new(
    tx: LedgerTransaction, key: str, source: str,
) -> Ok[None] | Err[StateConflictError | PersistenceError]:
    match exists(tx, key):
        case Err() as e:
            return e
        case Ok(True):
            return Err(conflict(key, ConflictReason.ALREADY_EXISTS, f"{key} already exists", source))
    return Ok(None)


def _new_account(
    account_id: str, company: str, currency: str, opening_balance: Decimal, source: str,
) -> Ok[Account] | Err[ValidationError]:
    violations: list[FieldViolation] = []
    if not account_id:
        violations.append(FieldViolation("account_id", "must be non-empty", repr(account_id)))
    if not validate_currency(currency):
        violations.append(FieldViolation("workingCurrency", "must be a known ISO 4217 code", repr(currency)))
    balance: NonNegativeDecimal | None = None
    match NonNegativeDecimal.parse(opening_balance):
        case Ok(b):
            balance = b
        case Err(e):
            violations.append(FieldViolation("opening_balance", e, str(opening_balance)))
    if violations or balance is None:
        return Err(invalid("Invalid account", "INVALID_ACCOUNT", source, *violations))
    return Ok(Account(
        account_id=NonEmptyStr(value=account_id),
        company=company,
        working_currency=NonEmptyStr(value=currency),
        cash_balance=balance,
    ))


def _commit[T](tx: LedgerTransaction, value: T) -> Ok[T] | Err[PersistenceError | VersionConflictError]:
    return tx.commit().map(lambda _: value)


def register_company(
    store: LedgerStore,
    *,
    symbol: str,
    name: str,
    issuing_account_id: str,
    currency: str,
    opening_balance: Decimal = Decimal(0),
) -> Ok[Company] | Err[OnboardingError]:
    """Create a company together with its issuing account."""
    source = "ledger.onboarding.register_company"
    match NonEmptyStr.parse(symbol):
        case Err(e):
            return Err(invalid(e, "INVALID_COMPANY", source, FieldViolation("symbol", e, repr(symbol))))
        case Ok(sym):
            pass
    match _new_account(issuing_account_id, symbol, currency, opening_balance, source):
        case Err() as e:
            return e
        case Ok(account):
            pass
    company = Company(
        symbol=sym,
        name=name,
        issuing_account_id=issuing_account_id,
        account_ids=frozenset({issuing_account_id}),
    )
    tx = store.begin()
    for key in (company_key(symbol), account_key(issuing_account_id)):
        match _check_new(tx, key, source):
            case Err() as e:
                tx.rollback()
                return e
    tx.put(company_key(symbol), company)
    tx.put(account_key(issuing_account_id), account)
    return _commit(tx, company)


def open_account(
    store: LedgerStore,
    *,
    company: str,
    account_id: str,
    currency: str,
    opening_balance: Decimal = Decimal(0),
) -> Ok[Account] | Err[OnboardingError]:
    """Add a trading account to an existing company."""
    source = "ledger.onboarding.open_account"
    match _new_account(account_id, company, currency, opening_balance, source):
        case Err() as e:
            return e
        case Ok(account):
            pass
    tx = store.begin()
    match load(tx, company_key(company), Company, source):
        case Err() as e:
            tx.rollback()
            return e
        case Ok(owner):
            pass
    match _check_new(tx, account_key(account_id), source):
        case Err() as e:
            tx.rollback()
            return e
    tx.put(account_key(account_id), account)
    tx.put(company_key(company), replace(owner, account_ids=owner.account_ids | {account_id}))
    return _commit(tx, account)


def create_market(
    store: LedgerStore,
    *,
    market_id: str,
    currency: str,
    max_maturity_days: int = 270,
) -> Ok[Market] | Err[OnboardingError]:
    source = "ledger.onboarding.create_market"
    violations: list[FieldViolation] = []
    if not market_id:
        violations.append(FieldViolation("market", "must be non-empty", repr(market_id)))
    if not validate_currency(currency):
        violations.append(FieldViolation("currency", "must be a known ISO 4217 code", repr(currency)))
    if max_maturity_days < 1:
        violations.append(FieldViolation("max_maturity_days", "must be >= 1", str(max_maturity_days)))
    if violations:
        return Err(invalid("Invalid market", "INVALID_MARKET", source, *violations))
    market = Market(
        market_id=NonEmptyStr(value=market_id),
        currency=NonEmptyStr(value=currency),
        max_maturity_days=max_maturity_days,
    )
    tx = store.begin()
    match _check_new(tx, market_key(market_id), source):
        case Err() as e:
            tx.rollback()
            return e
    tx.put(market_key(market_id), market)
    return _commit(tx, market)
