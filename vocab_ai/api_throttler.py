"""
vocab_ai/api_throttler.py
-----------------------------------
Điều tiết tốc độ + retry cho lệnh gọi OpenAI chat dùng trong báo cáo AI.

- Khoảng cách tối thiểu giữa 2 lần gọi (theo model hoặc toàn cục)
- Backoff cấp số nhân + jitter, tôn trọng header Retry-After
- Lỗi 429 / timeout / 5xx / mất kết nối => retry; lỗi 4xx khác => ném ngay
"""

import time
import random
import logging
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Tuple

from openai import OpenAI
from openai import APIConnectionError, APIStatusError, APITimeoutError, RateLimitError

logger = logging.getLogger(__name__)


class ThrottlerError(Exception):
    """Hết lượt retry mà API vẫn thất bại."""

    def __init__(self, message: str, last_exception: Optional[BaseException], attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


class ApiThrottler:
    def __init__(
        self,
        min_interval: float = 2.0,
        max_retries: int = 5,
        max_wait: float = 30.0,
        per_model: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Tham số:
            min_interval: khoảng cách tối thiểu giữa 2 lần gọi (giây)
            max_retries: số lần thử tối đa
            max_wait: thời gian chờ tối đa giữa các lần thử
            per_model: giới hạn riêng từng model (True) hay toàn cục (False)
        """
        self.min_interval = min_interval
        self.max_retries = max(1, max_retries)
        self.max_wait = max_wait
        self.per_model = per_model
        self._sleep = sleep

        self._lock = Lock()
        self._last_call: Dict[str, float] = {}

    def _key(self, model: str) -> str:
        return model if self.per_model else "__global__"

    def _reserve_slot(self, key: str) -> float:
        """Giữ chỗ lần gọi kế tiếp, trả về số giây cần chờ."""
        with self._lock:
            now = time.monotonic()
            ready_at = max(now, self._last_call.get(key, float("-inf")) + self.min_interval)
            self._last_call[key] = ready_at
            return ready_at - now

    def _backoff(self, attempt: int, retry_after: Optional[float]) -> float:
        if retry_after is not None:
            return min(self.max_wait, max(0.0, retry_after))
        return min(self.max_wait, 2 ** attempt + random.uniform(0.5, 2.0))

    @staticmethod
    def _retry_after(exc: BaseException) -> Optional[float]:
        response = getattr(exc, "response", None)
        headers = getattr(response, "headers", None)
        if not headers:
            return None
        value = headers.get("Retry-After")
        try:
            return float(value) if value else None
        except (TypeError, ValueError):
            return None

    def _classify(self, exc: BaseException) -> Tuple[bool, Optional[float]]:
        """(có retry được không, Retry-After nếu có)"""
        if isinstance(exc, RateLimitError):
            return True, self._retry_after(exc)
        if isinstance(exc, (APITimeoutError, APIConnectionError)):
            return True, None
        if isinstance(exc, APIStatusError):
            return 500 <= exc.status_code < 600, None
        return False, None

    def safe_chat(
        self,
        client: OpenAI,
        messages: List[Dict[str, Any]],
        model: str = "gpt-4o-mini",
        **kwargs,
    ):
        """Gọi chat.completions.create có throttling + retry; thất bại hẳn thì ném ThrottlerError."""
        key = self._key(model)
        last_exc: Optional[BaseException] = None

        for attempt in range(1, self.max_retries + 1):
            wait = self._reserve_slot(key)
            if wait > 0:
                logger.debug(f"⏳ Chờ {wait:.2f}s để tránh vượt giới hạn API ({key})")
                self._sleep(wait)

            try:
                return client.chat.completions.create(model=model, messages=messages, **kwargs)
            except (RateLimitError, APITimeoutError, APIConnectionError, APIStatusError) as e:
                retryable, retry_after = self._classify(e)
                if not retryable:
                    logger.error(f"🚫 Lỗi API không thể retry: {e}")
                    raise
                last_exc = e
                if attempt == self.max_retries:
                    break
                wait_time = self._backoff(attempt, retry_after)
                logger.warning(f"⚠️ {type(e).__name__}. Chờ {wait_time:.1f}s rồi thử lại ({attempt}/{self.max_retries})")
                self._sleep(wait_time)

        raise ThrottlerError("❌ Hết lượt retry, API thất bại.", last_exc, self.max_retries)
