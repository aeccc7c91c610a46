"""
Single-flight loading for shared datasets.

Concurrent requests for the same resource share one in-flight task. A
successful result is cached until reset; a failed load is forgotten so the
next caller retries.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger


class SingleFlight:
    """Coalesces concurrent loads keyed by resource identity."""

    def __init__(self):
        self._results: dict[str, Any] = {}
        self._inflight: dict[str, asyncio.Task] = {}

    def is_loaded(self, key: str) -> bool:
        return key in self._results

    def get(self, key: str) -> Any | None:
        """Cached result for a key, or None if it has not loaded."""
        return self._results.get(key)

    async def do(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the result for ``key``, running ``factory`` at most once at a time.

        Args:
            key: Resource identity (e.g. "manifest", "vocabulary")
            factory: Zero-argument coroutine function that performs the load

        Returns:
            The loaded value (shared by all concurrent callers)

        Raises:
            Whatever ``factory`` raised; the failure is not cached
        """
        if key in self._results:
            return self._results[key]

        task = self._inflight.get(key)
        if task is None:
            logger.debug(f"Starting load for {key}")
            task = asyncio.create_task(self._run(key, factory))
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            result = await factory()
        except Exception as e:
            logger.warning(f"Load failed for {key}: {e}")
            raise
        finally:
            self._inflight.pop(key, None)
        self._results[key] = result
        return result

    def reset(self, key: str | None = None) -> None:
        """Forget cached results (one key, or all of them)."""
        if key is None:
            self._results.clear()
        else:
            self._results.pop(key, None)
