import os
import logging
from typing import List, Optional

from dotenv import load_dotenv
from openai import OpenAI
from rich.console import Console
from rich.markdown import Markdown

from vocab_core.schema import TestResult
from vocab_ai.api_throttler import ApiThrottler, ThrottlerError

env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(dotenv_path=env_path)

logger = logging.getLogger(__name__)

MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

_throttler = ApiThrottler(min_interval=2.0, max_retries=5, max_wait=25.0, per_model=True)

SYSTEM_VI = (
    "Bạn là chuyên gia giảng dạy tiếng Nhật. Viết báo cáo Markdown với 4 phần:\n"
    "① **Tổng quan vốn từ:** diễn giải con số ước lượng và các thang JLPT/CEFR.\n"
    "② **Điểm mạnh / yếu:** dựa trên radar năng lực và tỉ lệ theo band.\n"
    "③ **Gợi ý luyện tập:** 3–5 hướng cụ thể phù hợp kiểu người học.\n"
    "④ **Mục tiêu tiếp theo:** một cột mốc vốn từ thực tế.\n"
    "Không tự ước lượng lại vốn từ; chỉ dùng số liệu được cung cấp."
)

SYSTEM_EN = (
    "You are a Japanese language coach. Write a Markdown report with 4 sections:\n"
    "① Vocabulary overview (explain the estimate and JLPT/CEFR mapping)\n"
    "② Strengths & weaknesses (from the competency radar and band accuracy)\n"
    "③ Study recommendations (3–5 concise bullet points for this learner type)\n"
    "④ Next milestone\n"
    "Do not re-estimate the vocabulary size; only use the numbers provided."
)


def _make_client() -> Optional[OpenAI]:
    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None
    return OpenAI(api_key=api_key)


def summarize_result(result: TestResult) -> str:
    """Tóm tắt TestResult thành văn bản ngắn gọn để đưa vào prompt."""
    radar = result.radar
    lines: List[str] = [
        f"- Vốn từ ước lượng: {result.total_predicted}",
        f"- Số câu đã hỏi: {result.total_questions}",
        f"- JLPT tương đương: {result.jlpt_level} | CEFR: {result.cefr_level}",
        f"- Tuổi bản xứ tương đương: {result.age_equivalent}",
        f"- Kiểu người học: {result.learner_type.value}",
        f"- Radar: survival={radar.survival}%, formal={radar.formal}%, culture={radar.culture}%, "
        f"literary={radar.literary}%, complexity={radar.complexity}%",
        "- Theo band:",
    ]
    for d in result.details:
        if d.total_in_band == 0:
            continue
        flag = " (bị cắt)" if d.dropped else ""
        lines.append(
            f"  - Band {d.band_id} (hạng {d.start_rank}-{d.end_rank}): "
            f"{d.known_in_band}/{d.total_in_band} biết, dự đoán {d.predicted_in_band} từ{flag}"
        )
    return "\n".join(lines)


def fallback_report(result: TestResult) -> str:
    """Báo cáo Markdown dựng từ phần phân tích cố định (khi không dùng được AI)."""
    parts = [
        f"### Vốn từ ước lượng: {result.total_predicted:,}",
        f"*{result.literacy_description}*",
        "",
        f"- **JLPT:** {result.jlpt_level}",
        f"- **CEFR:** {result.cefr_level}",
        f"- **Tuổi bản xứ:** {result.age_equivalent}",
    ]
    analysis = result.analysis
    if analysis:
        parts += [
            "",
            f"**Đánh giá:** {analysis.summary}",
            "",
            f"**Ứng dụng thực tế:** {analysis.practical}",
            "",
            f"**Gợi ý:** {analysis.advice}",
        ]
        if analysis.warning:
            parts += ["", f"> {analysis.warning}"]
    return "\n".join(parts)


def evaluate_vocab_result(
    result: TestResult,
    *,
    language: str = "vi",
    client: Optional[OpenAI] = None,
    model: Optional[str] = None,
    throttler: Optional[ApiThrottler] = None,
    temperature: float = 0.5,
    verbose: bool = True,
) -> str:
    """Báo cáo nhận xét bằng AI; thiếu API key hoặc API lỗi thì trả về báo cáo cố định."""
    console = Console()
    client = client or _make_client()
    if client is None:
        logger.info("OPENAI_API_KEY chưa được cấu hình, dùng báo cáo cố định.")
        report = fallback_report(result)
        if verbose:
            console.print(Markdown(report))
        return report

    system_prompt = SYSTEM_VI if language == "vi" else SYSTEM_EN
    prompt = f"📊 **Kết quả bài kiểm tra từ vựng**\n{summarize_result(result)}"

    if verbose:
        console.print("\n🤖 [cyan]Đang tạo báo cáo bằng OpenAI...[/cyan]\n")

    try:
        response = (throttler or _throttler).safe_chat(
            client,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            model=model or MODEL,
            temperature=temperature,
        )
        report = (response.choices[0].message.content or "").strip()
    except ThrottlerError as e:
        logger.error(f"❌ API thất bại sau {e.attempts} lần thử: {e.last_exception}")
        report = ""

    if not report:
        report = fallback_report(result)

    if verbose:
        console.print("\n📘 [bold]BÁO CÁO:[/bold]\n")
        console.print(Markdown(report))
    return report
