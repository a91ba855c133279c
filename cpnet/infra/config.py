"""Event topics, ledger policy and worker configuration.

Pure configuration data. Every object is frozen and passed explicitly to the
component that needs it; there is no module-level mutable configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import final

# ---------------------------------------------------------------------------
# Topic names
# ---------------------------------------------------------------------------

TOPIC_PAPER_CREATED: str = "cpnet.events.paper_created"
TOPIC_LISTED: str = "cpnet.events.listed"
TOPIC_PURCHASED: str = "cpnet.events.purchased"
TOPIC_REDEEMED: str = "cpnet.events.redeemed"
TOPIC_DID_ASSIGNED: str = "cpnet.events.did_assigned"
TOPIC_LISTING_WITHDRAWN: str = "cpnet.events.listing_withdrawn"

EVENT_TOPICS: tuple[str, ...] = (
    TOPIC_PAPER_CREATED,
    TOPIC_LISTED,
    TOPIC_PURCHASED,
    TOPIC_REDEEMED,
    TOPIC_DID_ASSIGNED,
    TOPIC_LISTING_WITHDRAWN,
)


# ---------------------------------------------------------------------------
# Ledger policy points
# ---------------------------------------------------------------------------


class DiscountConvention(Enum):
    """How a listing's discount turns into a settlement price."""

    FRACTION_OF_PAR = "FractionOfPar"  # price = par * (1 - discount)
    ABSOLUTE_AMOUNT = "AbsoluteAmount"  # price = par - discount


class RedemptionFunding(Enum):
    """Where the par value paid out at redemption comes from."""

    CREDIT_OWNER = "CreditOwner"  # credited to the owner from outside the network
    ISSUER_FUNDED = "IssuerFunded"  # transferred from the issuer's issuing account


@final
@dataclass(frozen=True, slots=True)
class LedgerPolicy:
    """Business policy for the lifecycle engine."""

    discount_convention: DiscountConvention = DiscountConvention.FRACTION_OF_PAR
    redemption_funding: RedemptionFunding = RedemptionFunding.CREDIT_OWNER
    withdraw_on_maturity: bool = True
    withdraw_on_redemption: bool = True
    max_account_balance: Decimal = Decimal("1E+15")
    max_maturity_days: int = 270
    max_units_per_issue: int = 1000


@final
@dataclass(frozen=True, slots=True)
class TransactionPolicy:
    """Optimistic-concurrency retry and timeout settings."""

    max_attempts: int = 5
    retry_backoff_ms: int = 0  # linear: attempt * retry_backoff_ms
    timeout_s: float = 30.0  # wall-clock limit on one transaction, not a money value

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise TypeError(f"max_attempts must be >= 1, got {self.max_attempts}")


# ---------------------------------------------------------------------------
# Temporal worker configuration
# ---------------------------------------------------------------------------

TASK_QUEUE: str = "cpnet-paper-lifecycle"


@final
@dataclass(frozen=True, slots=True)
class WorkerConfig:
    """Connection settings for the maturity-workflow worker."""

    target_host: str = "localhost:7233"
    namespace: str = "default"
    task_queue: str = TASK_QUEUE
    max_activity_workers: int = 8
