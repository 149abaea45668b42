"""
vocab_ai: báo cáo nhận xét kết quả bằng OpenAI (tùy chọn).

Chỉ diễn giải TestResult đã tính; không tham gia ước lượng vốn từ.
"""

from .api_throttler import ApiThrottler, ThrottlerError
from .ai_evaluator import evaluate_vocab_result, fallback_report, summarize_result

__all__ = [
    "ApiThrottler",
    "ThrottlerError",
    "evaluate_vocab_result",
    "fallback_report",
    "summarize_result",
]
