"""
Mô phỏng người học ảo để kiểm tra độ lệch của ước lượng.

Người học có vốn từ thật S biết mọi từ hạng <= S, mỗi câu trả lời bị
lật ngẫu nhiên với xác suất `noise`. Chạy qua phiên batch/streaming
trên kho từ tổng hợp trong bộ nhớ, rồi so sánh ước lượng với S.
"""

import os
import asyncio
import random
import logging
import statistics
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from vocab_core.band_policy import DEFAULT_BANDS
from vocab_core.retry import RetryPolicy
from vocab_core.sampler import CandidateSampler
from vocab_core.schema import FrequencyBand, TestResult
from vocab_core.session import AppState, BatchSession, StreamingSession
from vocab_core.word_store import InMemoryWordStore

env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(dotenv_path=env_path)
logging.basicConfig(level=logging.WARNING, format="[%(asctime)s] %(levelname)s - %(message)s")

logger = logging.getLogger(__name__)
console = Console()

_KANA_DIGITS = "あいうえおかきくけこ"
_KANJI_DIGITS = "山川田林森花空海雨風"

# Ngưỡng hạng -> tag JLPT cho kho tổng hợp
_SYNTHETIC_TAGS = ((800, "5"), (1500, "4"), (3700, "3"), (6000, "2"), (10000, "1"))


def synthetic_text(rank: int) -> str:
    """Mặt chữ duy nhất cho mỗi hạng; cứ 3 hạng có 1 jukugo."""
    digits = _KANJI_DIGITS if rank % 3 == 0 else _KANA_DIGITS
    text = "".join(digits[int(d)] for d in str(rank))
    # jukugo cần ít nhất 2 chữ Hán
    return text if len(text) >= 2 or digits is _KANA_DIGITS else text + "語"


def synthetic_bank(max_rank: int = 70000) -> InMemoryWordStore:
    words = {rank: synthetic_text(rank) for rank in range(1, max_rank + 1)}
    tags: Dict[str, str] = {}
    for rank, text in words.items():
        for limit, tag in _SYNTHETIC_TAGS:
            if rank <= limit:
                tags[text] = tag
                break
    return InMemoryWordStore(words, tags)


@dataclass
class SimulatedLearner:
    true_size: int
    noise: float = 0.0
    rng: Optional[random.Random] = None
    _answers: Dict[int, bool] = field(default_factory=dict)

    def knows(self, rank: int) -> bool:
        """Cùng một từ luôn cho cùng câu trả lời."""
        if rank not in self._answers:
            known = rank <= self.true_size
            rng = self.rng or random
            if self.noise > 0 and rng.random() < self.noise:
                known = not known
            self._answers[rank] = known
        return self._answers[rank]


@dataclass
class SimulationRow:
    true_size: int
    estimate: int
    questions: int
    learner_type: str

    @property
    def error_pct(self) -> float:
        if self.true_size <= 0:
            return 0.0
        return (self.estimate - self.true_size) * 100.0 / self.true_size


async def _play_batch(session: BatchSession, learner: SimulatedLearner, total_questions: int) -> Optional[TestResult]:
    if not await session.start(total_questions):
        return None
    st = session.state
    while st.app_state == AppState.TEST:
        for row in session.display_items():
            if learner.knows(row["id"]):
                await session.answer(row["id"])
        if st.app_state == AppState.TEST:
            await session.skip_remaining()
    return st.result


async def _play_streaming(session: StreamingSession, learner: SimulatedLearner, max_questions: int) -> Optional[TestResult]:
    if not await session.start():
        return None
    st = session.state
    while st.app_state == AppState.TEST:
        answered = False
        for row in session.display_items():
            if st.app_state != AppState.TEST:
                break
            if learner.knows(row["id"]):
                await session.answer(row["id"])
                await session.drain()
                answered = True
        if st.app_state != AppState.TEST:
            break
        if len(st.history) >= max_questions:
            session.finish()
        elif not answered:
            await session.refresh()
    await session.drain()
    return st.result


async def simulate_one(
    store: InMemoryWordStore,
    learner: SimulatedLearner,
    *,
    mode: str = "batch",
    total_questions: int = 200,
    max_questions: int = 600,
    bands: Sequence[FrequencyBand] = DEFAULT_BANDS,
    seed: Optional[int] = None,
) -> Optional[TestResult]:
    sampler = CandidateSampler(store, bands=bands, rng=random.Random(seed))
    policy = RetryPolicy(max_attempts=1)
    if mode == "streaming":
        streaming = StreamingSession(sampler, retry_policy=policy)
        return await _play_streaming(streaming, learner, max_questions)
    batch = BatchSession(sampler, retry_policy=policy)
    return await _play_batch(batch, learner, total_questions)


def run_simulation(
    true_sizes: Sequence[int] = (500, 2000, 5000, 10000, 20000, 40000),
    *,
    mode: str = "batch",
    total_questions: int = 200,
    noise: float = 0.05,
    repeats: int = 3,
    seed: int = 42,
    store: Optional[InMemoryWordStore] = None,
) -> List[SimulationRow]:
    """Chạy mô phỏng cho mọi (vốn từ thật x lần lặp); kết quả tái lập được qua seed."""
    store = store or synthetic_bank()
    rows: List[SimulationRow] = []
    jobs = [(size, k) for size in true_sizes for k in range(repeats)]

    for i, (size, _) in enumerate(tqdm(jobs, desc=f"🧪 Mô phỏng ({mode})", ncols=100)):
        learner = SimulatedLearner(true_size=size, noise=noise, rng=random.Random(seed * 1000 + i))
        result = asyncio.run(simulate_one(
            store, learner, mode=mode, total_questions=total_questions, seed=seed + i,
        ))
        if result is None:
            logger.warning(f"Phiên mô phỏng với vốn từ {size} không bắt đầu được")
            continue
        rows.append(SimulationRow(
            true_size=size,
            estimate=result.total_predicted,
            questions=result.total_questions,
            learner_type=result.learner_type.value,
        ))
    return rows


def print_report(rows: Sequence[SimulationRow]) -> None:
    table = Table(title="Ước lượng so với vốn từ thật")
    for col in ("Vốn từ thật", "Ước lượng", "Sai lệch", "Số câu", "Kiểu"):
        table.add_column(col, justify="right")
    for r in rows:
        color = "green" if abs(r.error_pct) <= 20 else "yellow" if abs(r.error_pct) <= 40 else "red"
        table.add_row(
            f"{r.true_size:,}",
            f"{r.estimate:,}",
            f"[{color}]{r.error_pct:+.1f}%[/{color}]",
            str(r.questions),
            r.learner_type,
        )
    console.print(table)
    if rows:
        mape = statistics.mean(abs(r.error_pct) for r in rows)
        console.print(f"Sai lệch tuyệt đối trung bình: [bold]{mape:.1f}%[/bold]")


def run_simulation_cli() -> None:
    console.rule("[bold cyan]MÔ PHỎNG NGƯỜI HỌC[/bold cyan]")
    raw = input("Chế độ: 1 = batch, 2 = streaming [1]: ").strip()
    mode = "streaming" if raw == "2" else "batch"
    try:
        repeats = int(input("Số lần lặp mỗi mức vốn từ (Enter = 3): ").strip() or 3)
    except ValueError:
        repeats = 3
    rows = run_simulation(mode=mode, repeats=max(1, repeats))
    print_report(rows)


if __name__ == "__main__":
    run_simulation_cli()
