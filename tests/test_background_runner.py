import asyncio

from src.domain.background import BackgroundRunner
from src.observability import metrics_snapshot, reset_metrics


def test_run_isolates_exceptions_and_counts_failures():
    reset_metrics()
    runner = BackgroundRunner()

    async def _boom():
        raise RuntimeError("boom")

    asyncio.run(runner.run(_boom, task_name="unit"))

    assert runner.in_flight == 0
    assert metrics_snapshot()["background.tasks.failed|task=unit"] == 1


def test_flush_waits_for_in_flight_work():
    runner = BackgroundRunner()
    done: list[str] = []

    async def _slow():
        await asyncio.sleep(0.01)
        done.append("ok")

    async def _scenario():
        task = asyncio.create_task(runner.run(_slow))
        await asyncio.sleep(0)
        drained = await runner.flush(1.0)
        await task
        return drained

    assert asyncio.run(_scenario()) is True
    assert done == ["ok"]


def test_flush_gives_up_after_timeout():
    runner = BackgroundRunner()

    async def _hang():
        await asyncio.sleep(10)

    async def _scenario():
        task = asyncio.create_task(runner.run(_hang))
        await asyncio.sleep(0)
        drained = await runner.flush(0.01)
        task.cancel()
        return drained

    assert asyncio.run(_scenario()) is False
