"""
Unit tests for single-flight loading.
"""

import asyncio

import pytest

from src.core.single_flight import SingleFlight


class TestSingleFlight:
    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_load(self):
        flight = SingleFlight()
        calls = 0

        async def load():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return {"loaded": True}

        results = await asyncio.gather(*(flight.do("manifest", load) for _ in range(5)))

        assert calls == 1
        assert all(result is results[0] for result in results)
        assert flight.is_loaded("manifest")

    @pytest.mark.asyncio
    async def test_result_is_cached(self):
        flight = SingleFlight()
        calls = []

        async def load():
            calls.append(1)
            return "data"

        assert await flight.do("vocabulary", load) == "data"
        assert await flight.do("vocabulary", load) == "data"
        assert len(calls) == 1
        assert flight.get("vocabulary") == "data"

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        flight = SingleFlight()
        attempts = 0

        async def flaky():
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("network down")
            return "ok"

        with pytest.raises(RuntimeError):
            await flight.do("manifest", flaky)
        assert not flight.is_loaded("manifest")
        assert await flight.do("manifest", flaky) == "ok"

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        flight = SingleFlight()

        async def first():
            return 1

        async def second():
            return 2

        assert await flight.do("a", first) == 1
        assert await flight.do("b", second) == 2

    @pytest.mark.asyncio
    async def test_reset(self):
        flight = SingleFlight()
        calls = []

        async def load():
            calls.append(1)
            return len(calls)

        await flight.do("a", load)
        flight.reset("a")
        assert flight.get("a") is None
        assert await flight.do("a", load) == 2
        flight.reset()
        assert not flight.is_loaded("a")
