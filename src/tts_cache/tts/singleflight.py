"""
Single-flight execution of generations.

Without coordination, two requests for the same article arriving together
both see ``pending``, both synthesize every chunk and the later write wins.
SingleFlight runs at most one generation per content id at a time:

    - a caller with the same fingerprint (same normalized text) joins the
      running generation and receives its result or its exception
    - a caller with a different fingerprint (the text was edited meanwhile)
      waits for the running generation to finish, then runs its own

The work runs in its own task, so a caller that goes away does not cancel
a generation other callers are waiting on.

Scope is one process and one event loop; separate processes still race and
the last write wins.

Usage:
    flights = SingleFlight()
    result, shared = await flights.run("42", "1a2b3c4d", lambda: generate("42"))
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Tuple

from tts_cache.core.logging import get_logger, verbose

_LOG = get_logger("tts-cache.singleflight")


@dataclass
class _Flight:
    token: str
    task: "asyncio.Task[Any]"


def _consume_outcome(task: "asyncio.Task[Any]") -> None:
    # Marks the exception as retrieved when every caller has gone away
    if not task.cancelled():
        task.exception()


class SingleFlight:
    """Coalesces concurrent calls that share a key and token."""

    def __init__(self):
        self._flights: Dict[str, _Flight] = {}
        self._shared_total = 0

    def in_flight(self, key: str) -> bool:
        return key in self._flights

    async def run(
        self,
        key: str,
        token: str,
        fn: Callable[[], Awaitable[Any]],
    ) -> Tuple[Any, bool]:
        """
        Run ``fn`` unless an identical call is already running.

        Args:
            key: Coalescing key (content id).
            token: Identity of the work (text fingerprint).
            fn: Zero-argument coroutine factory doing the work.

        Returns:
            Tuple of (result, shared). ``shared`` is True when the result
            came from another caller's execution.
        """
        while True:
            flight = self._flights.get(key)
            if flight is None:
                break
            if flight.token == token:
                self._shared_total += 1
                verbose(_LOG, "joined", key=key, token=token)
                return await asyncio.shield(flight.task), True
            verbose(_LOG, "waiting", key=key, token=token, running=flight.token)
            await asyncio.wait({flight.task})

        task = asyncio.ensure_future(fn())
        flight = _Flight(token=token, task=task)
        self._flights[key] = flight

        def _done(t: "asyncio.Task[Any]") -> None:
            if self._flights.get(key) is flight:
                del self._flights[key]
            _consume_outcome(t)

        task.add_done_callback(_done)
        return await asyncio.shield(task), False

    def stats(self) -> Dict[str, int]:
        return {"in_flight": len(self._flights), "shared_total": self._shared_total}
