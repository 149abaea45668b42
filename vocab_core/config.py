# vocab_core/config.py

"""
Cấu hình runtime đọc từ .env (thư mục gốc project).

Các bảng tĩnh (band tần suất, ngưỡng cấp độ, văn bản mô tả) nằm trong
band_policy.py và levels.py; ở đây chỉ có tham số môi trường.
"""

import os
from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(dotenv_path=env_path)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


# ===== Kho từ (PostgREST / Supabase) =====
WORD_STORE_URL = os.getenv("WORD_STORE_URL", "").rstrip("/")
WORD_STORE_KEY = os.getenv("WORD_STORE_KEY", "")
WORD_TABLE = os.getenv("WORD_TABLE", "bccwj")
TAG_TABLE = os.getenv("TAG_TABLE", "jlpt")
WORD_BANK_PATH = os.getenv("WORD_BANK_PATH", "")

LOOKUP_BATCH_SIZE = _env_int("LOOKUP_BATCH_SIZE", 50)
TAG_BATCH_SIZE = _env_int("TAG_BATCH_SIZE", 25)
HTTP_TIMEOUT = _env_float("HTTP_TIMEOUT", 15.0)

# ===== Retry =====
RETRY_MAX_ATTEMPTS = _env_int("RETRY_MAX_ATTEMPTS", 7)
RETRY_INITIAL_DELAY = _env_float("RETRY_INITIAL_DELAY", 1.0)
RETRY_BACKOFF_FACTOR = _env_float("RETRY_BACKOFF_FACTOR", 2.0)

# ===== Phiên kiểm tra =====
DISPLAY_SIZE = _env_int("DISPLAY_SIZE", 10)
