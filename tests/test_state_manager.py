import asyncio

import pytest

from context_engine.domain.context.state.state_manager import StateManager


class TestStateManager:
    """Per-session lock registry"""

    @pytest.mark.asyncio
    async def test_lock_dropped_after_block(self):
        manager = StateManager()

        async with manager.session("s1"):
            assert "s1" in manager.locks

        assert manager.locks == {}

    @pytest.mark.asyncio
    async def test_lock_kept_while_another_caller_waits(self):
        manager = StateManager()
        order = []

        async def worker(name: str, hold: float):
            async with manager.session("s1"):
                order.append(f"{name} in")
                await asyncio.sleep(hold)
                order.append(f"{name} out")

        first = asyncio.create_task(worker("a", 0.05))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(worker("b", 0))
        await asyncio.sleep(0.01)

        assert len(manager.locks) == 1
        await asyncio.gather(first, second)

        assert order == ["a in", "a out", "b in", "b out"]
        assert manager.locks == {}

    @pytest.mark.asyncio
    async def test_lock_released_on_error(self):
        manager = StateManager()

        with pytest.raises(RuntimeError):
            async with manager.session("s1"):
                raise RuntimeError("boom")

        assert manager.locks == {}
