"""
Bounded polling for provider-side long-running operations.

A video provider hands back an operation handle; the poller asks for its
state every `interval` seconds, at most `max_attempts` times. `check` returns
None while the operation is still running, a result once it is done, and
raises GenerationFailed if the provider reports an error.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from . import config
from .errors import GenerationTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class OperationPoller:
    def __init__(
        self,
        interval: float = config.VEO_POLL_INTERVAL,
        max_attempts: int = config.VEO_MAX_POLL_ATTEMPTS,
        sleep: Sleep = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    @property
    def budget_seconds(self) -> float:
        return self.interval * self.max_attempts

    async def wait(
        self,
        handle: str,
        check: Callable[[str], Awaitable[Optional[T]]],
        label: str = "operation",
    ) -> T:
        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.interval)

            result = await check(handle)
            if result is not None:
                logger.info(f"{label} {handle}: done after {attempt} poll(s)")
                return result

            logger.info(f"{label} poll {attempt}/{self.max_attempts}: still running")

        raise GenerationTimeout(
            f"{label} timed out after {self.budget_seconds:.0f}s "
            f"({self.max_attempts} polls)",
            detail={"operation": handle, "attempts": self.max_attempts},
        )
