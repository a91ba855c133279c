"""Workflow data types for the paper maturity workflow.

All types: @final @dataclass(frozen=True, slots=True).
Activity outputs carry exactly one of result / error.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import final

from cpnet.core.money import Money

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class MaturityOutcome(Enum):
    """Terminal states of the maturity workflow."""

    REDEEMED = "Redeemed"
    ALREADY_REDEEMED = "AlreadyRedeemed"
    FAILED = "Failed"


# ---------------------------------------------------------------------------
# Workflow input
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class MaturityInput:
    """One paper to redeem on its maturity date.

    The CUSIP serves as Temporal Workflow ID, so a paper has at most one
    running maturity workflow.
    """

    cusip: str
    maturity_date: date
    participant_id: str
    market_id: str | None = None

    def __post_init__(self) -> None:
        if not self.cusip:
            raise TypeError("MaturityInput.cusip must be non-empty")
        if not self.participant_id:
            raise TypeError("MaturityInput.participant_id must be non-empty")


# ---------------------------------------------------------------------------
# Activity I/O: sweep
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class SweepInput:
    market_id: str
    participant_id: str


@final
@dataclass(frozen=True, slots=True)
class SweepResult:
    market_id: str
    withdrawn_listing_ids: tuple[str, ...] = ()


@final
@dataclass(frozen=True, slots=True)
class SweepOutput:
    """Wrapper for sweep activity result or error."""

    result: SweepResult | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise TypeError("SweepOutput must have exactly one of result or error")


# ---------------------------------------------------------------------------
# Activity I/O: redemption
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class RedeemInput:
    cusip: str
    participant_id: str


@final
@dataclass(frozen=True, slots=True)
class RedemptionResult:
    """Who was paid, and how much. payout is None if redeemed earlier."""

    cusip: str
    holder: str | None = None
    holder_account: str | None = None
    payout: Money | None = None

    @property
    def already_redeemed(self) -> bool:
        return self.payout is None


@final
@dataclass(frozen=True, slots=True)
class RedeemOutput:
    """Wrapper for redeem activity result or error."""

    result: RedemptionResult | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise TypeError("RedeemOutput must have exactly one of result or error")


# ---------------------------------------------------------------------------
# Workflow output
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class MaturityResult:
    """Terminal outcome of the workflow."""

    cusip: str
    outcome: MaturityOutcome
    payout: Money | None = None
    withdrawn_listing_ids: tuple[str, ...] = ()
    reasons: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.outcome == MaturityOutcome.REDEEMED and self.payout is None:
            raise TypeError("REDEEMED outcome requires payout")
        if self.outcome != MaturityOutcome.REDEEMED and self.payout is not None:
            raise TypeError(f"{self.outcome.value} outcome must not have payout")
