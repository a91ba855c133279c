"""Ledger records: Company, Account, Market, PaperListing.

Records are immutable; components write a replaced copy. Cross-record
links are identifiers resolved through the Ledger Store (see keys below).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import final

from cpnet.core.errors import TradingError
from cpnet.core.identifiers import Did
from cpnet.core.money import Money, NonEmptyStr, NonNegativeDecimal
from cpnet.core.types import FrozenMap, UtcDatetime

# ---------------------------------------------------------------------------
# Store keys
# ---------------------------------------------------------------------------

COMPANY_PREFIX = "company:"
ACCOUNT_PREFIX = "account:"
PAPER_PREFIX = "paper:"
MARKET_PREFIX = "market:"
LISTING_PREFIX = "listing:"
EVENT_PREFIX = "event:"


def company_key(symbol: str) -> str:
    return f"{COMPANY_PREFIX}{symbol}"


def account_key(account_id: str) -> str:
    return f"{ACCOUNT_PREFIX}{account_id}"


def paper_key(cusip: str) -> str:
    return f"{PAPER_PREFIX}{cusip}"


def market_key(market_id: str) -> str:
    return f"{MARKET_PREFIX}{market_id}"


def listing_key(listing_id: str) -> str:
    return f"{LISTING_PREFIX}{listing_id}"


def event_key(event_id: str) -> str:
    return f"{EVENT_PREFIX}{event_id}"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class Company:
    """A network member. The issuing account is one of its accounts."""

    symbol: NonEmptyStr
    name: str
    issuing_account_id: str
    account_ids: frozenset[str]
    did: Did | None = None

    def __post_init__(self) -> None:
        if self.issuing_account_id not in self.account_ids:
            raise TypeError(
                f"Issuing account {self.issuing_account_id} is not among "
                f"{self.symbol.value}'s accounts"
            )


@final
@dataclass(frozen=True, slots=True)
class Account:
    """Cash account. working_currency is fixed at creation."""

    account_id: NonEmptyStr
    company: str
    working_currency: NonEmptyStr
    cash_balance: NonNegativeDecimal

    @property
    def balance(self) -> Money:
        return Money(amount=self.cash_balance.value, currency=self.working_currency)

    def with_balance(self, amount: Decimal) -> Account:
        return Account(
            account_id=self.account_id,
            company=self.company,
            working_currency=self.working_currency,
            cash_balance=NonNegativeDecimal(value=amount),
        )


@final
@dataclass(frozen=True, slots=True)
class Market:
    """A venue for one currency with a ceiling on remaining maturity."""

    market_id: NonEmptyStr
    currency: NonEmptyStr
    max_maturity_days: int

    def __post_init__(self) -> None:
        if self.max_maturity_days < 1:
            raise TypeError(f"max_maturity_days must be >= 1, got {self.max_maturity_days}")


@final
@dataclass(frozen=True, slots=True)
class PaperListing:
    """An offer to sell one paper at a discount on one market."""

    listing_id: str
    market_id: str
    cusip: str
    seller: str
    seller_account: str
    discount: NonNegativeDecimal
    listed_at: UtcDatetime


@final
@dataclass(frozen=True, slots=True)
class ListingBatch:
    """Outcome of listing several papers: what was listed, what was not."""

    market_id: str
    listed: tuple[PaperListing, ...]
    rejected: FrozenMap[str, TradingError]

    @property
    def listed_cusips(self) -> tuple[str, ...]:
        return tuple(lst.cusip for lst in self.listed)
