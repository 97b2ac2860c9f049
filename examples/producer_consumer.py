"""
Bounded queue wired through layers: config from the environment, logger and
metrics from the context, consumers in a worker pool.

Run: COQUEUE_MAXSIZE=4 COQUEUE_LOG_LEVEL=DEBUG python examples/producer_consumer.py
"""
import asyncio

from coqueue import (
    Context,
    Scope,
    Queue,
    QueueConfig,
    ConfigLayer,
    QueueLayer,
    LoggerLayer,
    MetricsLayer,
    MetricsRegistry,
    WorkerPool,
)


async def main():
    config = QueueConfig.from_env()
    layer = ConfigLayer(config) + (LoggerLayer | MetricsLayer) + QueueLayer

    async with Scope() as scope:
        env = await layer.build_scoped(Context(), scope)
        q: Queue[int] = env.get(Queue)

        async def handle(job: int) -> None:
            await asyncio.sleep(0.01)

        async def produce():
            for job in range(25):
                # waits whenever the consumers fall maxsize jobs behind
                await q.put(job)

        # the pool joins the queue only after produce() has returned
        pool = WorkerPool(q, handle, workers=3)
        await pool.run(feed=produce)
        print("processed =>", pool.processed)

        metrics = env.get(MetricsRegistry)
        for key, c in sorted(metrics.counters.items()):
            print(f"{key} = {c.value}")


if __name__ == "__main__":
    asyncio.run(main())
