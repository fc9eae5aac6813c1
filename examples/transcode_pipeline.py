"""
Video transcoding pipeline with suspend-and-resume.

Each upload workflow submits a transcode job, suspends until the
transcoder reports completion on the event bus, then publishes the result.
The transcoder is simulated: it finishes jobs in random order, delivers
one completion twice, and emits an unrelated "Job Failed" event.

Key Features:
- Continuation records in SQLite survive a broker restart
- Completion events filtered by source, detail type and status
- Duplicate deliveries resume nothing twice
- Listener shuts down gracefully after the last workflow resumes

Run:
    PYTHONPATH=src python examples/transcode_pipeline.py
"""

import asyncio
import logging
import random

from pyresume import (
    BrokerConfig,
    LocalEngine,
    QueueEventSource,
    ResumeBroker,
    RetryPolicy,
    SqliteContinuationStore,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class SimulatedTranscoder:
    """Runs jobs in the background and publishes their completion events."""

    def __init__(self, bus: QueueEventSource):
        self._bus = bus
        self._tasks: set[asyncio.Task] = set()

    def submit(self, job_id: str, video: str) -> None:
        task = asyncio.create_task(self._run(job_id, video))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, job_id: str, video: str) -> None:
        await asyncio.sleep(random.uniform(0.1, 0.6))
        event = {
            "source": "acme.transcoder",
            "detail-type": "Job Completed",
            "detail": {
                "id": job_id,
                "status": "SUCCEEDED",
                "output": f"s3://renders/{video}.mp4",
            },
        }
        await self._bus.publish(event)

        # At-least-once delivery: some events arrive twice
        if job_id.endswith("2"):
            await self._bus.publish(event)


async def upload_workflow(
    engine: LocalEngine, broker: ResumeBroker, transcoder: SimulatedTranscoder, video: str
) -> None:
    job_id = f"job-{video}"
    state = {"upload": {"video": video}, "transcode": {"jobId": job_id}}

    # Suspend point: record the handle, then hand the job off
    handle = await engine.suspend_with(broker.task, state, execution_id=f"upload-{video}")
    transcoder.submit(job_id, video)

    output = await engine.wait(handle, timeout=10.0)
    logger.info(f"upload-{video} resumed, transcoded file at {output['event']['output']}")


async def main():
    store = SqliteContinuationStore("data/transcode_pipeline.db")
    await store.connect()
    await store.reset()

    bus = QueueEventSource()
    engine = LocalEngine()
    broker = ResumeBroker(
        store,
        engine,
        BrokerConfig(
            name="transcode",
            suspend_id_path="$.transcode.jobId",
            resume_id_path="$.detail.id",
            event_pattern={
                "source": ["acme.transcoder"],
                "detail-type": ["Job Completed"],
                "detail": {"status": ["SUCCEEDED"]},
            },
            forward_event_detail=True,
            # SQLite is local; a locked database clears within seconds
            store_retry=RetryPolicy.STANDARD,
        ),
        source=bus,
    )
    broker.listener.with_poll_interval(0.1).with_max_concurrent(10)

    handle = await broker.start()
    transcoder = SimulatedTranscoder(bus)

    await bus.publish(
        {"source": "acme.transcoder", "detail-type": "Job Failed", "detail": {"id": "job-x"}}
    )

    videos = [f"clip{i}" for i in range(1, 6)]
    await asyncio.gather(*(upload_workflow(engine, broker, transcoder, v) for v in videos))

    # Let the duplicate deliveries drain before stopping
    await asyncio.sleep(0.3)
    await handle.shutdown()

    stats = broker.listener.stats
    print(
        f"Events: received={stats.received}, ignored={stats.ignored}, "
        f"resumed={stats.resumed}, skipped={stats.skipped}, failed={stats.failed}"
    )
    print(f"Signals accepted by engine: {engine.accepted_signals}")
    print(f"Pending records: {len(await store.list_records())}")

    await store.close()


if __name__ == "__main__":
    asyncio.run(main())
