# vocab_core/word_filter.py

import re
from typing import Iterable, List, Optional

from .schema import Word

KANJI_NUMERALS = "一二三四五六七八九十百千万億兆〇"

# Ký hiệu không phải từ vựng (tỉ lệ, giờ, liệt kê)
_BANNED_SYMBOLS = (":", "：", "・", "%", "％")

_DIGITS = re.compile(r"[0-9０-９]")

# Số Hán + hậu tố đếm (六十二年度, 三日目, 五人...)
_COUNTER_PATTERN = re.compile(
    rf"^[{KANJI_NUMERALS}]+"
    r"(年度|日目|時間|分|秒|回|番|月|日|年|人|円|階|号|度|歳|個|本|枚|時)$"
)

# Jukugo: ít nhất 2 chữ Hán liên tiếp (々 tính là chữ Hán)
_COMPOUND_PATTERN = re.compile(r"[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff\u3005]{2,}")


def is_valid_word(text: Optional[str]) -> bool:
    """Loại chuỗi số, số + hậu tố đếm, chuỗi chứa ký hiệu. Katakana/hỗn hợp vẫn hợp lệ."""
    if not text:
        return False

    if any(sym in text for sym in _BANNED_SYMBOLS):
        return False
    if _DIGITS.search(text):
        return False

    if _COUNTER_PATTERN.match(text):
        return False

    # Chỉ toàn số Hán (二十, 百万...)
    if len(text) >= 2 and all(ch in KANJI_NUMERALS for ch in text):
        return False

    return True


def is_compound(text: Optional[str]) -> bool:
    return bool(text) and _COMPOUND_PATTERN.search(text) is not None


def prioritize_compounds(words: Iterable[Word], quota: int) -> List[Word]:
    """Lấy jukugo trước, thiếu mới bù bằng từ thường. Giữ thứ tự gốc trong mỗi nhóm."""
    if quota <= 0:
        return []
    compounds, simple = [], []
    for w in words:
        (compounds if is_compound(w.text) else simple).append(w)
    return (compounds + simple)[:quota]
