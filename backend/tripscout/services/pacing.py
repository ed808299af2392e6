"""Pacing controller — global minimum interval plus per-key cooldowns."""

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class PacingController:
    """Spaces out every outbound provider call and tracks rate-limit cooldowns.

    The minimum interval is global across providers: one shared upstream limit
    can be hit by several categories at once. Cooldowns are per operation key
    (e.g. "amadeus-flight-search", "amadeus-location-CITY,AIRPORT").
    """

    def __init__(
        self,
        min_interval: float = 3.0,
        cooldown_window: float = 120.0,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self.cooldown_window = cooldown_window
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._turn_lock: asyncio.Lock | None = None
        self._cooldowns: dict[str, float] = {}
        self._cooldown_lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    async def sleep(self, seconds: float) -> None:
        await self._sleep(seconds)

    async def wait_turn(self) -> None:
        """Suspend until MIN_INTERVAL has passed since the previous call, then claim the slot."""
        if self._turn_lock is None:
            self._turn_lock = asyncio.Lock()
        async with self._turn_lock:
            if self._last_call is not None:
                wait = max(0.0, self.min_interval - (self._clock() - self._last_call))
                if wait > 0:
                    logger.debug(f"Pacing outbound call, waiting {wait:.2f}s")
                    await self._sleep(wait)
            self._last_call = self._clock()

    def start_cooldown(self, key: str) -> float:
        until = self._clock() + self.cooldown_window
        with self._cooldown_lock:
            self._cooldowns[key] = until
        logger.warning(f"Rate limit hit for {key}, cooling down for {self.cooldown_window:.0f}s")
        return until

    def cooldown_until(self, key: str) -> float | None:
        with self._cooldown_lock:
            until = self._cooldowns.get(key)
        if until is None or self._clock() > until:
            return None
        return until

    def is_rate_limited(self, key: str) -> bool:
        """Introspection only: never mutates cooldown state."""
        return self.cooldown_until(key) is not None

    # Public alias mirroring the engine's inbound contract
    check_rate_limit = is_rate_limited

    def active_cooldowns(self) -> dict[str, float]:
        now = self._clock()
        with self._cooldown_lock:
            return {k: until for k, until in self._cooldowns.items() if until >= now}
