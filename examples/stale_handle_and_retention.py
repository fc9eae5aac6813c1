"""
Failure handling: stale handles, engine outages and abandoned records.

Scenario:
- job-1: the execution times out before its job finishes, so the engine
  rejects the handle; the record is still cleaned up
- job-2: the engine is briefly unreachable; the signal is retried with
  the aggressive backoff preset and succeeds
- job-3: the completion event never arrives; the record is purged once
  it is older than the retention period

Run:
    PYTHONPATH=src python examples/stale_handle_and_retention.py
"""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from pyresume import (
    BrokerConfig,
    InMemoryContinuationStore,
    LocalEngine,
    ResumeBroker,
    RetryPolicy,
    SignalTransportError,
)

logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(name)s - %(message)s")


class UnreliableEngine(LocalEngine):
    """LocalEngine whose first few signals fail in transit."""

    def __init__(self, outages: int):
        super().__init__()
        self.outages = outages

    async def send_resume(self, handle, output):
        if self.outages > 0:
            self.outages -= 1
            raise SignalTransportError("engine endpoint unreachable", handle=handle)
        await super().send_resume(handle, output)


def done(job_id):
    return {"source": "acme.batch", "detail-type": "Batch Finished", "detail": {"id": job_id}}


async def main():
    store = InMemoryContinuationStore()
    engine = UnreliableEngine(outages=0)
    broker = ResumeBroker(
        store,
        engine,
        BrokerConfig(
            name="batch",
            event_pattern={"source": ["acme.batch"]},
            signal_retry=RetryPolicy.AGGRESSIVE,
            record_ttl=timedelta(days=3),
        ),
    )

    h1 = await engine.suspend_with(broker.task, {"id": "job-1"})
    await engine.suspend_with(broker.task, {"id": "job-2"})
    await engine.suspend_with(broker.task, {"id": "job-3"})

    engine.expire(h1)
    outcome = await broker.handle_event(done("job-1"))
    print(f"job-1: {outcome}")

    engine.outages = 2
    outcome = await broker.handle_event(done("job-2"))
    print(f"job-2: {outcome} after {outcome.signal_attempts} attempts")

    purged = await broker.purge_expired(now=datetime.now(UTC) + timedelta(days=4))
    print(f"purged {purged} abandoned record(s), {len(store)} left")


if __name__ == "__main__":
    asyncio.run(main())
