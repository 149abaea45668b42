# tests/conftest.py

from typing import Dict, List

import pytest

from vocab_core.errors import LookupFailure
from vocab_core.schema import FrequencyBand
from vocab_core.word_store import InMemoryWordStore

KANA = "あいうえおかきくけこ"
KANJI = "山川田林森花空海雨風"

# 3 band nhỏ, đủ để quét hết trong test
SMALL_BANDS: List[FrequencyBand] = [
    FrequencyBand(id=1, min_rank=1, max_rank=40, ratio=0.5, sparsity_factor=1.0),
    FrequencyBand(id=2, min_rank=41, max_rank=80, ratio=0.3, sparsity_factor=0.9),
    FrequencyBand(id=3, min_rank=81, max_rank=120, ratio=0.2, sparsity_factor=0.5),
]


def kana_word(rank: int) -> str:
    """Từ hợp lệ, không phải jukugo, duy nhất theo hạng."""
    return "".join(KANA[int(d)] for d in str(rank)) + "る"


def kanji_word(rank: int) -> str:
    """Jukugo duy nhất theo hạng."""
    return "".join(KANJI[int(d)] for d in str(rank)) + "語"


def make_bank(max_rank: int = 120, compound_every: int = 0) -> Dict[int, str]:
    words = {}
    for rank in range(1, max_rank + 1):
        if compound_every and rank % compound_every == 0:
            words[rank] = kanji_word(rank)
        else:
            words[rank] = kana_word(rank)
    return words


class FlakyStore(InMemoryWordStore):
    """Kho từ lỗi `fail_times` lần đầu rồi mới trả dữ liệu."""

    def __init__(self, words, fail_times: int = 0, **kwargs):
        super().__init__(words, **kwargs)
        self.fail_times = fail_times
        self.failures = 0

    async def _fetch_chunk(self, ids):
        if self.failures < self.fail_times:
            self.failures += 1
            raise LookupFailure("giả lập mất kết nối", status_code=503)
        return await super()._fetch_chunk(ids)


@pytest.fixture
def small_bands() -> List[FrequencyBand]:
    return list(SMALL_BANDS)


@pytest.fixture
def bank_store() -> InMemoryWordStore:
    return InMemoryWordStore(make_bank())


@pytest.fixture
def no_sleep():
    """Hàm sleep giả: ghi lại thời gian chờ, không chờ thật."""
    delays: List[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    fake_sleep.delays = delays
    return fake_sleep
