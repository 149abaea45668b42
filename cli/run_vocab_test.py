import os
import asyncio
import logging
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from vocab_core import config
from vocab_core.errors import VocabError
from vocab_core.sampler import CandidateSampler
from vocab_core.schema import TestResult
from vocab_core.session import AppState, BatchSession, StreamingSession, TEST_MODES, VocabSession
from vocab_core.word_store import SupabaseWordStore, WordStore, load_word_bank

env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(dotenv_path=env_path)

os.makedirs("logs", exist_ok=True)
logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
_file_handler = logging.FileHandler("logs/vocab_test.log", encoding="utf-8")
_file_handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(name)s - %(message)s"))
logging.getLogger().addHandler(_file_handler)

logger = logging.getLogger(__name__)
console = Console()

HELP = "Nhập số thứ tự các từ bạn BIẾT (vd: 1 3 7), [bold]r[/bold] = đổi cả màn hình, [bold]s[/bold] = bỏ qua phần còn lại, [bold]q[/bold] = kết thúc"


def make_store() -> Optional[WordStore]:
    """Kho từ JSON cục bộ nếu có WORD_BANK_PATH, ngược lại dùng REST."""
    if config.WORD_BANK_PATH:
        return load_word_bank(config.WORD_BANK_PATH)
    if not config.WORD_STORE_URL:
        console.print("[red]Chưa cấu hình WORD_STORE_URL hoặc WORD_BANK_PATH trong file .env[/red]")
        console.print("Ví dụ nội dung .env:")
        console.print("WORD_STORE_URL=https://xxxx.supabase.co")
        console.print("WORD_STORE_KEY=eyJhbGciOi...")
        return None
    return SupabaseWordStore()


async def ask(prompt: str) -> str:
    # input() chạy ở thread riêng để tác vụ nạp đệm nền vẫn chạy
    return (await asyncio.to_thread(input, prompt)).strip().lower()


def render_display(session: VocabSession) -> None:
    st = session.state
    table = Table(title=f"Đã biết: {session.known_count} | Đã hỏi: {len(st.history)}")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Từ", style="bold")
    table.add_column("Band", justify="center", style="magenta")
    for row in session.display_items():
        table.add_row(str(row["slot"] + 1), row["word"], str(row["band_id"]))
    console.print(table)
    if isinstance(session, BatchSession):
        console.print(f"[dim]Còn {session.remaining} câu trong hàng đợi[/dim]")
    elif isinstance(session, StreamingSession):
        console.print(f"[dim]Band hiện tại: {st.current_band}[/dim]")


def render_result(result: TestResult) -> None:
    console.rule("[bold cyan]KẾT QUẢ[/bold cyan]")
    console.print(f"Vốn từ ước lượng: [bold green]{result.total_predicted:,}[/bold green] từ "
                  f"({result.total_questions} câu)")
    console.print(f"JLPT: {result.jlpt_level} | CEFR: {result.cefr_level} | Tuổi bản xứ: {result.age_equivalent}")
    console.print(f"Kiểu người học: [magenta]{result.learner_type.value}[/magenta]")
    console.print(f"[italic]{result.literacy_description}[/italic]\n")

    bands = Table(title="Chi tiết theo band")
    for col in ("Band", "Hạng", "Biết/Hỏi", "Dự đoán", ""):
        bands.add_column(col)
    for d in result.details:
        bands.add_row(
            str(d.band_id),
            f"{d.start_rank}-{d.end_rank}",
            f"{d.known_in_band}/{d.total_in_band}",
            str(d.predicted_in_band),
            "[red]cắt[/red]" if d.dropped else "",
        )
    console.print(bands)

    radar = result.radar
    console.print(
        f"Radar: survival {radar.survival}% · formal {radar.formal}% · culture {radar.culture}% · "
        f"literary {radar.literary}% · complexity {radar.complexity}%"
    )
    jlpt = ", ".join(f"{s.level} {s.score}% ({s.known}/{s.total})" for s in result.jlpt_scores if s.total)
    if jlpt:
        console.print(f"Theo tag JLPT: {jlpt}")


def _selected_ids(session: VocabSession, raw: str) -> List[int]:
    # chốt id trước khi trả lời vì slot sẽ bị thay ngay
    by_slot = {row["slot"] + 1: row["id"] for row in session.display_items()}
    ids = []
    for token in raw.replace(",", " ").split():
        if token.isdigit() and int(token) in by_slot:
            ids.append(by_slot[int(token)])
        else:
            console.print(f"[yellow]Bỏ qua lựa chọn không hợp lệ: {token}[/yellow]")
    return ids


async def _start(session: VocabSession) -> bool:
    with console.status("Đang tải từ vựng...") as status:
        if isinstance(session, BatchSession):
            session.choose_mode()
            for i, mode in enumerate(TEST_MODES, 1):
                console.print(f"  {i}. {mode.icon} {mode.label} - {mode.total_questions} câu "
                              f"({mode.estimated_time}): {mode.description}")
            status.stop()
            raw = await ask(f"Chọn chế độ (1-{len(TEST_MODES)}, Enter = 1): ")
            idx = int(raw) - 1 if raw.isdigit() and 1 <= int(raw) <= len(TEST_MODES) else 0
            status.start()
            ok = await session.start(TEST_MODES[idx].total_questions)
        else:
            ok = await session.start()
    if not ok:
        console.print(f"[red]{session.state.status_message or 'Không thể bắt đầu bài kiểm tra.'}[/red]")
    return ok


async def run_session(session: VocabSession, with_ai: bool = False) -> Optional[TestResult]:
    if not await _start(session):
        return None

    st = session.state
    console.print(HELP)
    while st.app_state == AppState.TEST:
        render_display(session)
        raw = await ask("> ")

        if raw == "q":
            session.finish()
        elif raw == "r":
            if isinstance(session, StreamingSession):
                with console.status("Đang đổi bộ từ mới..."):
                    await session.refresh()
            else:
                console.print("[yellow]Chế độ cố định không có refresh, dùng 's'.[/yellow]")
        elif raw == "s":
            if isinstance(session, BatchSession):
                await session.skip_remaining()
            else:
                await session.refresh()
        elif raw:
            for item_id in _selected_ids(session, raw):
                await session.answer(item_id)
        else:
            console.print(HELP)

        if st.status_message:
            console.print(f"[yellow]{st.status_message}[/yellow]")

    if isinstance(session, StreamingSession):
        await session.drain()

    result = st.result
    if result is None:
        return None
    render_result(result)

    if with_ai:
        from vocab_ai.ai_evaluator import evaluate_vocab_result
        report = evaluate_vocab_result(result)
        os.makedirs("results", exist_ok=True)
        with open("results/vocab_report.md", "w", encoding="utf-8") as f:
            f.write(report)
        console.print("[green]Báo cáo lưu tại: results/vocab_report.md[/green]")
    return result


async def _main(mode: str, with_ai: bool) -> Optional[TestResult]:
    store = make_store()
    if store is None:
        return None
    async with store:
        sampler = CandidateSampler(store)
        session = BatchSession(sampler) if mode == "batch" else StreamingSession(sampler)
        try:
            return await run_session(session, with_ai=with_ai)
        except VocabError as e:
            logger.error(f"Lỗi phiên kiểm tra: {e}")
            console.print(f"[red]{e}[/red]")
            return None


def run_vocab_test(mode: str = "streaming", with_ai: Optional[bool] = None) -> Optional[TestResult]:
    if with_ai is None:
        with_ai = bool(os.getenv("OPENAI_API_KEY"))
    console.rule(f"[bold cyan]KIỂM TRA VỐN TỪ TIẾNG NHẬT ({mode})[/bold cyan]")
    return asyncio.run(_main(mode, with_ai))


if __name__ == "__main__":
    raw = input("Chế độ: 1 = thích ứng (streaming), 2 = cố định (batch) [1]: ").strip()
    run_vocab_test("batch" if raw == "2" else "streaming")
