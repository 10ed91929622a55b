from __future__ import annotations

import asyncio

from stt_gateway.app.engine.periodic import PeriodicTask

from _gateway_fakes import run, wait_until


def test_callback_runs_on_each_tick_until_stopped() -> None:
    async def scenario() -> tuple[int, int, bool]:
        calls: list[int] = []

        async def callback() -> None:
            calls.append(1)

        task = PeriodicTask(callback, 0.005, name="test-ticker")
        task.start()
        await wait_until(lambda: len(calls) >= 3)
        await task.stop()
        stopped_at = len(calls)
        await asyncio.sleep(0.03)
        return stopped_at, len(calls), task.running

    stopped_at, final_count, running = run(scenario())

    assert stopped_at == final_count
    assert not running


def test_stop_lets_in_flight_callback_finish() -> None:
    async def scenario() -> list[str]:
        events: list[str] = []
        started = asyncio.Event()

        async def callback() -> None:
            events.append("begin")
            started.set()
            await asyncio.sleep(0.02)
            events.append("end")

        task = PeriodicTask(callback, 0.001)
        task.start()
        await started.wait()
        await task.stop()
        return events

    assert run(scenario()) == ["begin", "end"]


def test_stop_is_idempotent_and_prevents_restart() -> None:
    async def scenario() -> tuple[int, bool]:
        calls: list[int] = []

        async def callback() -> None:
            calls.append(1)

        task = PeriodicTask(callback, 0.001)
        await task.stop()
        await task.stop()
        task.start()
        await asyncio.sleep(0.02)
        return len(calls), task.running

    assert run(scenario()) == (0, False)


def test_failing_callback_does_not_end_the_loop() -> None:
    async def scenario() -> int:
        async def callback() -> None:
            raise RuntimeError("tick failed")

        task = PeriodicTask(callback, 0.002)
        task.start()
        await wait_until(lambda: task.tick_count >= 3)
        await task.stop()
        return task.tick_count

    assert run(scenario()) >= 3
