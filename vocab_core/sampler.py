# vocab_core/sampler.py

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from .band_policy import DEFAULT_BANDS, get_band, next_band_id
from .errors import InsufficientPool
from .retry import AttemptCallback, RetryPolicy, run_with_policy
from .schema import FrequencyBand, TestItem, Word
from .word_filter import is_valid_word, prioritize_compounds
from .word_store import WordStore

logger = logging.getLogger(__name__)


@dataclass
class SampleResult:
    items: List[TestItem] = field(default_factory=list)
    words: Dict[int, Word] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.items)


def require_full(result: SampleResult, wanted: int) -> SampleResult:
    """Ném InsufficientPool nếu kết quả lấy mẫu ít hơn số cần."""
    if len(result.items) < wanted:
        raise InsufficientPool(wanted, len(result.items))
    return result


# ============================
# Bộ lấy mẫu theo band tần suất
# ============================

class CandidateSampler:
    """
    Rút ngẫu nhiên id trong band, tra kho từ, lọc từ hợp lệ.

    Quy ước:
        - excluded_ids được cập nhật NGAY khi rút id (trước khi await kho từ),
          nên hai lời gọi chạy song song không bao giờ rút trùng id.
        - Sau khi tra xong, chỉ id được nhận giữ lại trong excluded_ids,
          id bị loại được trả lại.
        - Band hiện tại không đủ từ thì chuyển sang band hiếm hơn kế tiếp.
    """

    def __init__(
        self,
        store: WordStore,
        bands: Sequence[FrequencyBand] = DEFAULT_BANDS,
        rng: Optional[random.Random] = None,
        oversample_factor: int = 3,
        max_rounds: int = 5,
    ) -> None:
        self.store = store
        self.bands = list(bands)
        self.rng = rng or random.Random()
        self.oversample_factor = max(1, oversample_factor)
        self.max_rounds = max(1, max_rounds)

    def _start_band(self, band_id: int) -> Optional[FrequencyBand]:
        band = get_band(self.bands, band_id)
        if band is None:
            band = next((b for b in self.bands if b.id > band_id), None)
        return band

    def _draw_candidates(
        self,
        band: FrequencyBand,
        excluded_ids: Set[int],
        needed: int,
        tried: Optional[Set[int]] = None,
    ) -> List[int]:
        tried = tried or set()
        target = needed * self.oversample_factor
        max_attempts = max(needed * 10, 100)
        drawn: List[int] = []
        seen: Set[int] = set()

        attempts = 0
        while len(drawn) < target and attempts < max_attempts:
            rank = self.rng.randint(band.min_rank, band.max_rank)
            if rank not in excluded_ids and rank not in tried and rank not in seen:
                seen.add(rank)
                drawn.append(rank)
            attempts += 1

        # band gần cạn: quét tuần tự phần còn lại
        if not drawn and band.size <= max_attempts:
            drawn = [
                r for r in range(band.min_rank, band.max_rank + 1)
                if r not in excluded_ids and r not in tried
            ][:target]
            self.rng.shuffle(drawn)
        return drawn

    async def sample(
        self,
        band_id: int,
        excluded_ids: Set[int],
        wanted: int,
        *,
        seen_texts: Optional[Set[str]] = None,
        prefer_compound: bool = False,
    ) -> SampleResult:
        """
        Lấy tối đa `wanted` TestItem bắt đầu từ `band_id`.

        Trả về ít hơn `wanted` nếu đã hết band (kho từ cạn), người gọi
        phải xử lý như trường hợp không đủ từ.
        """
        result = SampleResult()
        if wanted <= 0:
            return result

        texts = seen_texts if seen_texts is not None else set()
        band = self._start_band(band_id)

        try:
            await self._fill(result, band, excluded_ids, wanted, texts, prefer_compound)
        except Exception:
            # Lỗi giữa chừng: trả lại toàn bộ id/mặt chữ đã nhận trong lời gọi này
            excluded_ids.difference_update(item.id for item in result.items)
            texts.difference_update(w.text for w in result.words.values())
            raise

        if len(result.items) < wanted:
            logger.warning(f"⚠️ Kho từ không đủ: cần {wanted}, chỉ lấy được {len(result.items)}")

        self.rng.shuffle(result.items)
        return result

    async def _fill(
        self,
        result: SampleResult,
        band: Optional[FrequencyBand],
        excluded_ids: Set[int],
        wanted: int,
        texts: Set[str],
        prefer_compound: bool,
    ) -> None:
        while len(result.items) < wanted and band is not None:
            # id đã thử và bị loại trong band này, không rút lại
            tried: Set[int] = set()
            rounds = 0
            while len(result.items) < wanted and rounds < self.max_rounds:
                needed = wanted - len(result.items)
                candidates = self._draw_candidates(band, excluded_ids, needed, tried)
                if not candidates:
                    break
                rounds += 1
                tried.update(candidates)
                accepted = await self._resolve_round(
                    result, band, candidates, excluded_ids, needed, texts, prefer_compound
                )
                logger.debug(
                    f"Band {band.id} (vòng {rounds}): rút {len(candidates)} ứng viên, nhận {accepted}/{needed}"
                )

            if len(result.items) < wanted:
                nxt = next_band_id(self.bands, band.id)
                band = get_band(self.bands, nxt) if nxt is not None else None

    async def _resolve_round(
        self,
        result: SampleResult,
        band: FrequencyBand,
        candidates: List[int],
        excluded_ids: Set[int],
        needed: int,
        texts: Set[str],
        prefer_compound: bool,
    ) -> int:
        # giữ chỗ đồng bộ trước khi await kho từ
        excluded_ids.update(candidates)
        accepted: Set[int] = set()
        try:
            resolved = await self.store.resolve(candidates)

            fresh: List[Word] = []
            round_texts: Set[str] = set()
            for rank in candidates:
                word = resolved.get(rank)
                if word is None or not is_valid_word(word.text):
                    continue
                if word.text in texts or word.text in round_texts:
                    continue
                round_texts.add(word.text)
                fresh.append(word)

            chosen = prioritize_compounds(fresh, needed) if prefer_compound else fresh[:needed]
            for word in chosen:
                result.items.append(TestItem(id=word.id, band_id=band.id))
                result.words[word.id] = word
                accepted.add(word.id)
                texts.add(word.text)
        finally:
            excluded_ids.difference_update(r for r in candidates if r not in accepted)
        return len(accepted)


async def sample_with_retry(
    sampler: CandidateSampler,
    band_id: int,
    excluded_ids: Set[int],
    wanted: int,
    *,
    seen_texts: Optional[Set[str]] = None,
    prefer_compound: bool = False,
    on_attempt: Optional[AttemptCallback] = None,
    policy: Optional[RetryPolicy] = None,
    sleep=asyncio.sleep,
) -> SampleResult:
    """Bọc sampler.sample bằng retry backoff khi kho từ lỗi tạm thời."""
    return await run_with_policy(
        lambda: sampler.sample(
            band_id,
            excluded_ids,
            wanted,
            seen_texts=seen_texts,
            prefer_compound=prefer_compound,
        ),
        policy or RetryPolicy(),
        on_attempt=on_attempt,
        sleep=sleep,
    )
