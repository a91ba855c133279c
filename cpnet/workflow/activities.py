"""Activity implementations for the paper maturity workflow.

Activities are thin IO wrappers around the Trading Engine; all ledger
logic stays in cpnet.ledger. Each activity runs as the workflow's
participant through the ContextIdentityResolver. They are synchronous
because the engine blocks on store locks and retry backoff; the worker
runs them on a thread pool.

Business rejections come back as an output with error set and are not
retried. Store conflicts and failures raise ApplicationError so the
activity's RetryPolicy applies.
"""

from __future__ import annotations

from temporalio import activity
from temporalio.exceptions import ApplicationError

from cpnet.core.errors import (
    ConcurrentModificationError,
    ConflictReason,
    PersistenceError,
    StateConflictError,
    TradingError,
)
from cpnet.core.result import Err, Ok
from cpnet.core.types import UtcDatetime
from cpnet.gateway.types import RedeemPaperRequest
from cpnet.infra.identity import ContextIdentityResolver
from cpnet.ledger.engine import TradingEngine
from cpnet.workflow.types import (
    RedeemInput,
    RedeemOutput,
    RedemptionResult,
    SweepInput,
    SweepOutput,
    SweepResult,
)


def _raise_if_transient(error: TradingError) -> None:
    if isinstance(error, (ConcurrentModificationError, PersistenceError)):
        raise ApplicationError(
            f"{error.code}: {error.message}", type=type(error).__name__,
        )


class PaperLifecycleActivities:
    """Activities bound to one engine and identity directory."""

    def __init__(self, engine: TradingEngine, resolver: ContextIdentityResolver) -> None:
        self._engine = engine
        self._resolver = resolver

    @activity.defn(name="sweep_matured_listings")
    def sweep_matured_listings(self, inp: SweepInput) -> SweepOutput:
        """Withdraw matured listings on one market.

        Timeout: 30s | Retries: 5 | Non-retryable: StateConflictError
        Idempotent: yes (a second sweep finds nothing to withdraw)
        """
        activity.logger.info("Sweeping matured listings on %s", inp.market_id)
        with self._resolver.acting_as(inp.participant_id):
            outcome = self._engine.withdraw_matured_listings(inp.market_id)
        match outcome:
            case Ok(events):
                ids = tuple(e.listing.listing_id for e in events)
                activity.logger.info("Withdrew %d listing(s) on %s", len(ids), inp.market_id)
                return SweepOutput(result=SweepResult(market_id=inp.market_id, withdrawn_listing_ids=ids))
            case Err(error):
                _raise_if_transient(error)
                return SweepOutput(error=f"{error.code}: {error.message}")

    @activity.defn(name="redeem_matured_paper")
    def redeem_matured_paper(self, inp: RedeemInput) -> RedeemOutput:
        """Redeem one paper at par.

        Timeout: 30s | Retries: 5 | Non-retryable: StateConflictError, ValidationError
        Idempotent: yes (a repeat sees ALREADY_REDEEMED and reports it)
        """
        activity.logger.info("Redeeming %s", inp.cusip)
        match RedeemPaperRequest.create(matured_paper=inp.cusip, submitted_at=UtcDatetime.now()):
            case Err(error):
                return RedeemOutput(error=f"{error.code}: {error.message}")
            case Ok(request):
                pass
        with self._resolver.acting_as(inp.participant_id):
            outcome = self._engine.redeem(request)
        match outcome:
            case Ok(event):
                activity.logger.info(
                    "Redeemed %s: %s to %s", inp.cusip, event.payout, event.holder_account,
                )
                return RedeemOutput(result=RedemptionResult(
                    cusip=inp.cusip,
                    holder=event.holder,
                    holder_account=event.holder_account,
                    payout=event.payout,
                ))
            case Err(StateConflictError(reason=ConflictReason.ALREADY_REDEEMED)):
                activity.logger.info("%s was already redeemed", inp.cusip)
                return RedeemOutput(result=RedemptionResult(cusip=inp.cusip))
            case Err(error):
                _raise_if_transient(error)
                return RedeemOutput(error=f"{error.code}: {error.message}")
