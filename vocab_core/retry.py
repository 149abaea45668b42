# vocab_core/retry.py

"""
Retry với backoff theo cấp số nhân cho các lệnh tra kho từ.

Chỉ LookupFailure được coi là lỗi tạm thời; lỗi khác ném ra ngay.
Hết lượt thì ném lại LookupFailure cuối cùng.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from . import config
from .errors import LookupFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

AttemptCallback = Callable[[int, int], None]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = config.RETRY_MAX_ATTEMPTS
    initial_delay: float = config.RETRY_INITIAL_DELAY
    backoff_factor: float = config.RETRY_BACKOFF_FACTOR


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = config.RETRY_MAX_ATTEMPTS,
    initial_delay: float = config.RETRY_INITIAL_DELAY,
    backoff_factor: float = config.RETRY_BACKOFF_FACTOR,
    on_attempt: Optional[AttemptCallback] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Gọi `operation()` tối đa `max_attempts` lần.

    Tham số:
        operation: hàm không đối số trả về awaitable (tạo coroutine mới mỗi lần)
        on_attempt: callback(attempt, max_attempts) sau mỗi lần thất bại
        sleep: hàm chờ (thay được trong test)
    """
    max_attempts = max(1, max_attempts)
    delay = initial_delay
    last_exc: Optional[LookupFailure] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await operation()
        except LookupFailure as e:
            last_exc = e
            if on_attempt:
                on_attempt(attempt, max_attempts)
            if attempt == max_attempts:
                break
            logger.warning(f"⚠️ Lần thử {attempt}/{max_attempts} thất bại: {e}. Thử lại sau {delay:.1f}s")
            await sleep(delay)
            delay *= backoff_factor

    logger.error(f"❌ Hết {max_attempts} lượt retry, kho từ không phản hồi ổn định.")
    raise last_exc


async def run_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    on_attempt: Optional[AttemptCallback] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    return await with_retry(
        operation,
        max_attempts=policy.max_attempts,
        initial_delay=policy.initial_delay,
        backoff_factor=policy.backoff_factor,
        on_attempt=on_attempt,
        sleep=sleep,
    )
