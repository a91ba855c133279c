"""Worker for the paper maturity workflow.

Usage::

    import asyncio
    from cpnet.workflow.worker import run_worker

    asyncio.run(run_worker(engine, resolver))
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from temporalio.client import Client
from temporalio.worker import Worker

from cpnet.infra.config import WorkerConfig
from cpnet.infra.identity import ContextIdentityResolver
from cpnet.ledger.engine import TradingEngine
from cpnet.workflow.activities import PaperLifecycleActivities
from cpnet.workflow.converter import CPNET_DATA_CONVERTER
from cpnet.workflow.maturity_workflow import PaperMaturityWorkflow


def build_worker(
    client: Client,
    activities: PaperLifecycleActivities,
    task_queue: str,
    activity_executor: ThreadPoolExecutor,
) -> Worker:
    """Synchronous activities run on activity_executor; the caller owns its shutdown."""
    return Worker(
        client,
        task_queue=task_queue,
        workflows=[PaperMaturityWorkflow],
        activities=[activities.sweep_matured_listings, activities.redeem_matured_paper],
        activity_executor=activity_executor,
    )


async def run_worker(
    engine: TradingEngine,
    resolver: ContextIdentityResolver,
    config: WorkerConfig | None = None,
) -> None:
    """Connect to Temporal and run the worker until interrupted."""
    config = config or WorkerConfig()
    client = await Client.connect(
        config.target_host, namespace=config.namespace,
        data_converter=CPNET_DATA_CONVERTER,
    )
    activities = PaperLifecycleActivities(engine, resolver)
    with ThreadPoolExecutor(max_workers=config.max_activity_workers) as executor:
        worker = build_worker(client, activities, config.task_queue, executor)
        await worker.run()
