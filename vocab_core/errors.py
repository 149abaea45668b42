# vocab_core/errors.py

from typing import Optional


class VocabError(Exception):
    """Lỗi gốc của engine kiểm tra từ vựng."""


class LookupFailure(VocabError):
    """
    Lỗi khi tra cứu kho từ (mạng, timeout, HTTP status không thành công).
    Được retry với backoff; hết lượt thì báo ra người dùng.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InsufficientPool(VocabError):
    """Không còn đủ từ hợp lệ chưa hỏi, kể cả sau khi đã duyệt hết các band."""

    def __init__(self, wanted: int, got: int):
        super().__init__(f"Không đủ từ vựng: cần {wanted}, chỉ lấy được {got}")
        self.wanted = wanted
        self.got = got


class BandConfigError(VocabError, ValueError):
    """Bảng band tần suất không hợp lệ (chồng lấn, đứt đoạn, tỉ lệ sai...)."""
