# vocab_core/session.py

"""
Quản lý phiên kiểm tra: hàng hiển thị, bộ đệm prefetch, lịch sử trả lời.

Hai chế độ:
- StreamingSession: thích ứng, không giới hạn độ dài, tự lên band
- BatchSession: hàng đợi cố định N câu dựng sẵn theo tỉ lệ band

Toàn bộ trạng thái thay đổi của một lượt thi nằm trong một SessionState.
Mọi thao tác trên excluded_ids / prefetch đều đồng bộ (trước await),
nên hai sự kiện dồn dập không tiêu thụ trùng một từ.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Sequence, Set

from . import config
from .band_policy import (
    ADVANCE_THRESHOLDS,
    REFRESH_CAPS,
    advance_threshold,
    allocate_questions,
    next_band_id,
    refresh_cap,
)
from .errors import InsufficientPool, LookupFailure
from .retry import AttemptCallback, RetryPolicy
from .sampler import CandidateSampler, SampleResult, require_full, sample_with_retry
from .schema import AnswerRecord, TestItem, TestResult, Word
from .scoring import DEFAULT_PARAMS, ScoringParams, score_test

logger = logging.getLogger(__name__)

MSG_CONNECTION_FAILED = "Không kết nối được kho từ. Máy chủ có thể đang khởi động, vui lòng thử lại sau vài giây."
MSG_NOT_ENOUGH_WORDS = "Kho từ không đủ để bắt đầu bài kiểm tra."


class AppState(Enum):
    WELCOME = "WELCOME"
    MODE_SELECT = "MODE_SELECT"
    LOADING = "LOADING"
    TEST = "TEST"
    CALCULATING = "CALCULATING"
    RESULTS = "RESULTS"


@dataclass(frozen=True)
class TestMode:
    __test__ = False

    id: str
    label: str
    total_questions: int
    estimated_time: str
    description: str
    icon: str = ""


TEST_MODES: List[TestMode] = [
    TestMode("quick", "Nhanh", 100, "~5 phút", "Ước lượng sơ bộ, phù hợp khi ít thời gian.", "⚡"),
    TestMode("standard", "Tiêu chuẩn", 200, "~10 phút", "Cân bằng giữa thời gian và độ chính xác.", "🎯"),
    TestMode("deep", "Chuyên sâu", 500, "~25 phút", "Độ tin cậy cao nhất, nhất là ở các band hiếm.", "🔬"),
]


@dataclass
class SessionState:
    """Trạng thái một lượt thi; retry() thay bằng object mới với epoch + 1."""
    epoch: int = 0
    app_state: AppState = AppState.WELCOME

    excluded_ids: Set[int] = field(default_factory=set)
    seen_texts: Set[str] = field(default_factory=set)
    words: Dict[int, Word] = field(default_factory=dict)
    history: List[AnswerRecord] = field(default_factory=list)
    processed_ids: Set[int] = field(default_factory=set)

    display: List[Optional[TestItem]] = field(default_factory=list)
    prefetch: Deque[TestItem] = field(default_factory=deque)

    # batch mode
    queue: List[TestItem] = field(default_factory=list)
    queue_pos: int = 0

    # streaming mode
    current_band: int = 1
    answered_in_band: Dict[int, int] = field(default_factory=dict)
    refresh_counts: Dict[int, int] = field(default_factory=dict)
    # tăng mỗi lần refresh; từ nạp đệm của lượt trước bị bỏ
    refresh_generation: int = 0

    is_loading: bool = False
    is_refreshing: bool = False
    status_message: str = ""
    result: Optional[TestResult] = None


# ============================
# Lớp cơ sở
# ============================

class VocabSession:
    apply_sparsity = False

    def __init__(
        self,
        sampler: CandidateSampler,
        *,
        display_size: int = config.DISPLAY_SIZE,
        retry_policy: Optional[RetryPolicy] = None,
        scoring_params: ScoringParams = DEFAULT_PARAMS,
        sleep=asyncio.sleep,
    ) -> None:
        self.sampler = sampler
        self.bands = sampler.bands
        self.display_size = max(1, display_size)
        self.retry_policy = retry_policy or RetryPolicy()
        self.scoring_params = scoring_params
        self._sleep = sleep
        self.state = SessionState()

    # ----- dữ liệu cho tầng giao diện -----
    def display_items(self) -> List[Dict[str, Any]]:
        out = []
        for slot, item in enumerate(self.state.display):
            if item is None:
                continue
            word = self.state.words.get(item.id)
            out.append({
                "slot": slot,
                "id": item.id,
                "band_id": item.band_id,
                "word": word.text if word else "",
            })
        return out

    @property
    def known_count(self) -> int:
        return sum(1 for rec in self.state.history if rec.is_known)

    @property
    def is_busy(self) -> bool:
        return self.state.is_loading or self.state.is_refreshing

    # ----- tiện ích nội bộ -----
    def _is_stale(self, epoch: int) -> bool:
        return self.state.epoch != epoch

    def _on_attempt(self, attempt: int, max_attempts: int) -> None:
        self.state.status_message = f"Kết nối chậm. Đang thử lại... ({attempt}/{max_attempts})"

    async def _fetch(
        self,
        band_id: int,
        wanted: int,
        *,
        prefer_compound: bool = False,
        on_attempt: Optional[AttemptCallback] = None,
        state: Optional[SessionState] = None,
    ) -> SampleResult:
        st = state or self.state
        return await sample_with_retry(
            self.sampler,
            band_id,
            st.excluded_ids,
            wanted,
            seen_texts=st.seen_texts,
            prefer_compound=prefer_compound,
            on_attempt=on_attempt,
            policy=self.retry_policy,
            sleep=self._sleep,
        )

    def _abort_to_welcome(self, message: str) -> None:
        logger.error(f"🚫 {message}")
        self.state.status_message = message
        self.state.app_state = AppState.WELCOME

    def _slot_of(self, item_id: int) -> Optional[int]:
        for slot, item in enumerate(self.state.display):
            if item is not None and item.id == item_id:
                return slot
        return None

    def _record(self, item: TestItem, is_known: bool) -> None:
        st = self.state
        if item.id in st.processed_ids:
            return
        st.processed_ids.add(item.id)
        st.history.append(AnswerRecord(id=item.id, band_id=item.band_id, is_known=is_known))

    def _claim(self, item_id: int) -> Optional[int]:
        """Kiểm tra sự kiện trả lời; trả về slot hoặc None nếu phải bỏ qua."""
        st = self.state
        if st.app_state != AppState.TEST:
            return None
        if item_id in st.processed_ids:
            logger.debug(f"Bỏ qua sự kiện trùng cho từ {item_id}")
            return None
        return self._slot_of(item_id)

    # ----- kết thúc & làm lại -----
    def finish(self) -> Optional[TestResult]:
        """Chấm điểm với dữ liệu hiện có; từ còn trên màn hình tính là không biết."""
        st = self.state
        if st.app_state in (AppState.CALCULATING, AppState.RESULTS):
            return st.result

        st.app_state = AppState.CALCULATING
        for item in st.display:
            if item is not None:
                self._record(item, False)
        st.display = [None] * len(st.display)

        st.result = score_test(
            st.history,
            st.words,
            len(st.history),
            bands=self.bands,
            params=self.scoring_params,
            apply_sparsity=self.apply_sparsity,
        )
        st.app_state = AppState.RESULTS
        logger.info(
            f"✅ Hoàn tất: {len(st.history)} câu, ước lượng {st.result.total_predicted} từ "
            f"({st.result.learner_type.value})"
        )
        return st.result

    def retry(self) -> None:
        """Quay về WELCOME, xóa toàn bộ trạng thái lượt thi."""
        self.state = SessionState(epoch=self.state.epoch + 1)


# ============================
# Streaming mode
# ============================

class StreamingSession(VocabSession):
    """
    Hàng hiển thị K từ + bộ đệm K từ. Mỗi lần trả lời "biết":
    lấy ngay một từ từ bộ đệm thay vào, rồi nạp bù bộ đệm ở nền.
    """

    def __init__(
        self,
        sampler: CandidateSampler,
        *,
        advance_thresholds: Sequence[int] = ADVANCE_THRESHOLDS,
        refresh_caps: Sequence[int] = REFRESH_CAPS,
        **kwargs,
    ) -> None:
        super().__init__(sampler, **kwargs)
        self.advance_thresholds = advance_thresholds
        self.refresh_caps = refresh_caps
        self._refills: Set[asyncio.Task] = set()

    async def start(self) -> bool:
        st = self.state
        if st.is_loading or st.app_state != AppState.WELCOME:
            return False

        first_band = self.bands[0].id
        st.is_loading = True
        st.app_state = AppState.LOADING
        epoch = st.epoch
        try:
            result = await self._fetch(first_band, self.display_size * 2, on_attempt=self._on_attempt)
        except LookupFailure as e:
            if not self._is_stale(epoch):
                logger.error(f"Lỗi tải dữ liệu ban đầu: {e}")
                self._abort_to_welcome(MSG_CONNECTION_FAILED)
            return False
        finally:
            st.is_loading = False

        if self._is_stale(epoch):
            logger.info("Bỏ qua kết quả tải của phiên cũ")
            return False

        st.status_message = ""
        try:
            require_full(result, self.display_size)
        except InsufficientPool as e:
            logger.warning(f"{e}")
            self._abort_to_welcome(MSG_NOT_ENOUGH_WORDS)
            return False

        st.words.update(result.words)
        st.display = list(result.items[:self.display_size])
        st.prefetch = deque(result.items[self.display_size:])
        st.current_band = first_band
        st.app_state = AppState.TEST
        return True

    async def answer(self, item_id: int) -> bool:
        slot = self._claim(item_id)
        if slot is None:
            return False

        st = self.state
        self._record(st.display[slot], True)
        st.display[slot] = None

        if not st.prefetch:
            logger.warning("⚠️ Bộ đệm rỗng, kết thúc bài kiểm tra.")
            self.finish()
            return True

        # Lấy từ bộ đệm trước mọi await
        st.display[slot] = st.prefetch.popleft()

        band = st.current_band
        count = st.answered_in_band.get(band, 0) + 1
        st.answered_in_band[band] = count

        fetch_band = band
        nxt = next_band_id(self.bands, band)
        if nxt is not None and count >= advance_threshold(band, self.advance_thresholds):
            st.current_band = nxt
            fetch_band = nxt
            logger.info(f"⬆️ Đạt {count} từ ở band {band}, chuyển sang band {nxt}")

        self._spawn_refill(fetch_band)
        return True

    def _spawn_refill(self, band_id: int) -> None:
        st = self.state
        task = asyncio.get_running_loop().create_task(self._refill(band_id, st, st.refresh_generation))
        self._refills.add(task)
        task.add_done_callback(self._refills.discard)

    @staticmethod
    def _release(st: SessionState, result: SampleResult) -> None:
        st.excluded_ids.difference_update(item.id for item in result.items)
        st.seen_texts.difference_update(w.text for w in result.words.values())

    async def _refill(self, band_id: int, st: SessionState, generation: int) -> None:
        # st là trạng thái lúc tạo tác vụ; retry() thay state thì kết quả bị bỏ
        try:
            result = await self._fetch(band_id, 1, state=st)
        except LookupFailure as e:
            logger.error(f"Lỗi nạp bộ đệm (band {band_id}): {e}")
            return

        if self._is_stale(st.epoch):
            logger.info("Bỏ qua từ nạp đệm của phiên cũ")
            self._release(st, result)
            return
        if st.refresh_generation != generation:
            # refresh đã thay cả màn hình + bộ đệm, trả id lại cho kho
            logger.info("Bỏ qua từ nạp đệm trước lượt refresh")
            self._release(st, result)
            return
        if not result.items:
            logger.warning(f"Không còn từ để nạp bộ đệm từ band {band_id} trở đi.")
            return

        st.words.update(result.words)
        st.prefetch.extend(result.items)

    async def drain(self) -> None:
        """Chờ mọi tác vụ nạp đệm đang chạy."""
        while self._refills:
            await asyncio.gather(*list(self._refills))

    async def refresh(self) -> bool:
        """Đổi cả màn hình: mọi từ đang hiện tính là không biết."""
        st = self.state
        if st.app_state != AppState.TEST or st.is_refreshing:
            return False

        st.refresh_generation += 1
        for item in st.display:
            if item is not None:
                self._record(item, False)
        st.display = []

        band = st.current_band
        count = st.refresh_counts.get(band, 0) + 1
        st.refresh_counts[band] = count
        if count >= refresh_cap(band, self.refresh_caps):
            logger.info(f"Đã refresh {count} lần ở band {band}, kết thúc bài.")
            self.finish()
            return True

        st.is_refreshing = True
        epoch = st.epoch
        try:
            result = await self._fetch(band, self.display_size * 2, on_attempt=self._on_attempt)
        except LookupFailure as e:
            if self._is_stale(epoch):
                return False
            logger.error(f"Lỗi refresh, chấm điểm với dữ liệu hiện có: {e}")
            st.status_message = ""
            self.finish()
            return True
        finally:
            st.is_refreshing = False

        if self._is_stale(epoch):
            return False

        st.status_message = ""
        try:
            require_full(result, self.display_size)
        except InsufficientPool as e:
            logger.warning(f"Không đủ từ cho lượt refresh, kết thúc bài: {e}")
            self.finish()
            return True

        st.words.update(result.words)
        st.display = list(result.items[:self.display_size])
        st.prefetch = deque(result.items[self.display_size:])
        return True


# ============================
# Batch mode
# ============================

class BatchSession(VocabSession):
    """
    Hàng đợi N câu dựng sẵn theo tỉ lệ band (ưu tiên jukugo trong band).
    Câu trả lời xong được thay bằng câu kế tiếp trong hàng đợi tại đúng slot.
    """

    apply_sparsity = True

    def choose_mode(self) -> bool:
        if self.state.app_state != AppState.WELCOME:
            return False
        self.state.app_state = AppState.MODE_SELECT
        return True

    async def start(self, total_questions: int) -> bool:
        st = self.state
        if total_questions <= 0:
            raise ValueError("total_questions phải > 0")
        if st.is_loading or st.app_state not in (AppState.WELCOME, AppState.MODE_SELECT):
            return False

        st.is_loading = True
        st.app_state = AppState.LOADING
        epoch = st.epoch
        counts = allocate_questions(total_questions, self.bands)
        queue: List[TestItem] = []
        words: Dict[int, Word] = {}
        try:
            for band in self.bands:
                need = counts.get(band.id, 0)
                if need <= 0:
                    continue
                result = await self._fetch(band.id, need, prefer_compound=True, on_attempt=self._on_attempt)
                if self._is_stale(epoch):
                    return False
                queue.extend(result.items)
                words.update(result.words)
        except LookupFailure as e:
            if not self._is_stale(epoch):
                logger.error(f"Lỗi dựng hàng đợi: {e}")
                self._abort_to_welcome(MSG_CONNECTION_FAILED)
            return False
        finally:
            st.is_loading = False

        st.status_message = ""
        if len(queue) < min(self.display_size, total_questions):
            self._abort_to_welcome(MSG_NOT_ENOUGH_WORDS)
            return False
        if len(queue) < total_questions:
            logger.warning(f"Hàng đợi chỉ có {len(queue)}/{total_questions} câu")

        st.words.update(words)
        st.queue = queue
        st.display = list(queue[:self.display_size])
        st.queue_pos = len(st.display)
        st.app_state = AppState.TEST
        logger.info(f"📋 Đã dựng hàng đợi {len(queue)} câu: {counts}")
        return True

    @property
    def remaining(self) -> int:
        return len(self.state.queue) - self.state.queue_pos

    def _next_item(self) -> Optional[TestItem]:
        st = self.state
        if st.queue_pos >= len(st.queue):
            return None
        item = st.queue[st.queue_pos]
        st.queue_pos += 1
        return item

    def _check_complete(self) -> None:
        st = self.state
        if st.queue_pos >= len(st.queue) and all(item is None for item in st.display):
            self.finish()

    async def answer(self, item_id: int) -> bool:
        slot = self._claim(item_id)
        if slot is None:
            return False

        st = self.state
        self._record(st.display[slot], True)
        st.display[slot] = self._next_item()
        self._check_complete()
        return True

    async def skip_remaining(self) -> bool:
        """Mọi slot còn hiện tính là không biết, thay bằng câu kế tiếp."""
        st = self.state
        if st.app_state != AppState.TEST:
            return False

        for slot, item in enumerate(st.display):
            if item is None:
                continue
            self._record(item, False)
            st.display[slot] = self._next_item()
        self._check_complete()
        return True
