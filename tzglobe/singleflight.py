# tzglobe/singleflight.py
"""Singleflight guard for async loads.

When many callers ask for the same key at once:
- Caller 1: starts the load
- Callers 2..N: await caller 1's task
- Result: 1 load instead of N
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional


class SingleflightCache:
    """Ensures only ONE in-flight task per key."""

    def __init__(self):
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self._stats = {"misses": 0, "saves": 0}

    def is_in_flight(self, key: str) -> bool:
        task = self._in_flight.get(key)
        return task is not None and not task.done()

    async def get_or_fetch(
        self,
        key: str,
        fetch_func: Callable[[], Awaitable[Any]],
        timeout: Optional[float] = None
    ) -> Any:
        """
        Get value for key, ensuring only one fetch happens concurrently.

        The shared task is shielded, so a waiter that gets cancelled does not
        cancel the load for everybody else.

        Args:
            key: Cache key
            fetch_func: Async function to run if nothing is in flight
            timeout: Max wait time for this caller (None waits forever)

        Returns:
            Result from fetch_func
        """
        async with self._lock:
            if key in self._in_flight and not self._in_flight[key].done():
                task = self._in_flight[key]
                self._stats["saves"] += 1
                logging.debug(f"Singleflight: Waiting for in-flight request ({key[:20]}...)")
            else:
                task = asyncio.ensure_future(fetch_func())
                self._in_flight[key] = task
                self._stats["misses"] += 1
                logging.debug(f"Singleflight: Starting new fetch ({key[:20]}...)")

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logging.error(f"Singleflight timeout for key: {key[:20]}...")
            raise
        finally:
            async with self._lock:
                if self._in_flight.get(key) is task and task.done():
                    del self._in_flight[key]

    def get_stats(self) -> Dict:
        """Get singleflight statistics."""
        total = self._stats["misses"] + self._stats["saves"]
        if total > 0:
            save_rate = (self._stats["saves"] / total) * 100
        else:
            save_rate = 0

        return {
            **self._stats,
            "total_requests": total,
            "save_rate_pct": round(save_rate, 2)
        }
