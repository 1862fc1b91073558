from typing import Awaitable, Callable, Optional, TypeVar
import asyncio
import logging

from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class RetryingImageCaller:
    """
    Bounded exponential backoff around a single-shot image call.

    The wait before retry k (k >= 1) is base_delay * 2**(k-1) seconds, with no
    jitter. After max_retries failed retries the last error is re-raised as is.
    """

    def __init__(self, max_retries: int = 3, base_delay: float = 1.0, sleep: Sleep = asyncio.sleep):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    async def call(self, fn: Callable[[], Awaitable[T]], max_retries: Optional[int] = None, base_delay: Optional[float] = None) -> T:
        retries = self.max_retries if max_retries is None else max_retries
        delay = self.base_delay if base_delay is None else base_delay

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=wait_exponential(multiplier=delay, exp_base=2, min=0),
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(fn)
