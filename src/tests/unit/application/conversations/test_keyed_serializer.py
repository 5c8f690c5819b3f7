"""Unit tests for KeyedSerializer."""

import asyncio

import pytest

from src.application.services.conversations import KeyedSerializer


@pytest.mark.unit
class TestKeyedSerializer:
    async def test_same_key_runs_in_submission_order(self):
        serializer = KeyedSerializer()
        order: list[str] = []

        async def work(label: str, delay: float) -> str:
            order.append(f"start {label}")
            await asyncio.sleep(delay)
            order.append(f"end {label}")
            return label

        results = await asyncio.gather(
            serializer.run("conv-1", lambda: work("a", 0.05)),
            serializer.run("conv-1", lambda: work("b", 0.0)),
            serializer.run("conv-1", lambda: work("c", 0.01)),
        )

        assert results == ["a", "b", "c"]
        assert order == ["start a", "end a", "start b", "end b", "start c", "end c"]

    async def test_different_keys_run_concurrently(self):
        serializer = KeyedSerializer()
        both_started = asyncio.Event()
        started: set[str] = set()

        async def work(key: str) -> None:
            started.add(key)
            if len(started) == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1.0)

        await asyncio.gather(
            serializer.run("conv-1", lambda: work("conv-1")),
            serializer.run("conv-2", lambda: work("conv-2")),
        )

        assert started == {"conv-1", "conv-2"}

    async def test_failure_does_not_block_the_lane(self):
        serializer = KeyedSerializer()

        async def boom() -> None:
            raise RuntimeError("boom")

        async def ok() -> str:
            return "ok"

        with pytest.raises(RuntimeError):
            await serializer.run("conv-1", boom)

        assert await serializer.run("conv-1", ok) == "ok"

    async def test_idle_keys_are_released(self):
        serializer = KeyedSerializer()

        async def noop() -> None:
            return None

        await asyncio.gather(*(serializer.run(f"conv-{i}", noop) for i in range(10)))

        assert serializer.active_keys == 0
        assert serializer.is_busy("conv-1") is False
