"""Durable workflow that redeems a commercial paper at maturity.

Steps: sleep until maturity -> sweep the paper's market -> redeem.

Determinism contract: this module contains NO I/O, NO randomness and
NO system clock access (uses workflow.now()). All ledger interaction is
delegated to PaperLifecycleActivities.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime, time, timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from cpnet.workflow.activities import PaperLifecycleActivities
    from cpnet.workflow.types import (
        MaturityInput,
        MaturityOutcome,
        MaturityResult,
        RedeemInput,
        SweepInput,
    )

ACTIVITY_TIMEOUT: timedelta = timedelta(seconds=30)

LEDGER_RETRY = RetryPolicy(
    initial_interval=timedelta(seconds=1),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=30),
    maximum_attempts=5,
    non_retryable_error_types=["StateConflictError", "ValidationError", "AuthorizationError"],
)


def maturity_instant(maturity_date: date) -> datetime:
    """Start of the maturity date in UTC; the paper is redeemable from then."""
    return datetime.combine(maturity_date, time(0), tzinfo=UTC)


@workflow.defn(name="PaperMaturity")
class PaperMaturityWorkflow:
    """Waits on Temporal's clock for maturity, then redeems the paper.

    Invariants maintained:
    - Redemption is never attempted before the maturity date
    - Every run reaches exactly one MaturityOutcome
    """

    def __init__(self) -> None:
        self._status: str = "SCHEDULED"

    @workflow.query
    def get_status(self) -> str:
        return self._status

    @workflow.run
    async def run(self, inp: MaturityInput) -> MaturityResult:
        self._status = "WAITING_FOR_MATURITY"
        remaining = maturity_instant(inp.maturity_date) - workflow.now()
        if remaining > timedelta(0):
            await asyncio.sleep(remaining.total_seconds())

        withdrawn: tuple[str, ...] = ()
        if inp.market_id is not None:
            self._status = "SWEEPING"
            sweep = await workflow.execute_activity_method(
                PaperLifecycleActivities.sweep_matured_listings,
                SweepInput(market_id=inp.market_id, participant_id=inp.participant_id),
                start_to_close_timeout=ACTIVITY_TIMEOUT,
                retry_policy=LEDGER_RETRY,
            )
            if sweep.error is not None:
                self._status = "FAILED"
                return MaturityResult(
                    cusip=inp.cusip,
                    outcome=MaturityOutcome.FAILED,
                    reasons=(f"Sweep failed: {sweep.error}",),
                )
            assert sweep.result is not None
            withdrawn = sweep.result.withdrawn_listing_ids

        self._status = "REDEEMING"
        redemption = await workflow.execute_activity_method(
            PaperLifecycleActivities.redeem_matured_paper,
            RedeemInput(cusip=inp.cusip, participant_id=inp.participant_id),
            start_to_close_timeout=ACTIVITY_TIMEOUT,
            retry_policy=LEDGER_RETRY,
        )
        if redemption.error is not None:
            self._status = "FAILED"
            return MaturityResult(
                cusip=inp.cusip,
                outcome=MaturityOutcome.FAILED,
                withdrawn_listing_ids=withdrawn,
                reasons=(f"Redemption failed: {redemption.error}",),
            )
        assert redemption.result is not None

        self._status = "COMPLETED"
        if redemption.result.already_redeemed:
            return MaturityResult(
                cusip=inp.cusip,
                outcome=MaturityOutcome.ALREADY_REDEEMED,
                withdrawn_listing_ids=withdrawn,
            )
        return MaturityResult(
            cusip=inp.cusip,
            outcome=MaturityOutcome.REDEEMED,
            payout=redemption.result.payout,
            withdrawn_listing_ids=withdrawn,
        )
