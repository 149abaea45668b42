# vocab_core/band_policy.py

from __future__ import annotations

import json
import math
from typing import Dict, List, Mapping, Optional, Sequence, TypeVar

from .errors import BandConfigError
from .schema import FrequencyBand

K = TypeVar("K")


# ============================
# Bảng band mặc định (BCCWJ 70.000 từ)
# ============================

DEFAULT_BANDS: List[FrequencyBand] = [
    FrequencyBand(id=1, min_rank=1, max_rank=1000, ratio=0.20, sparsity_factor=1.0),       # Core (N5)
    FrequencyBand(id=2, min_rank=1001, max_rank=3000, ratio=0.20, sparsity_factor=1.0),    # Basic (N4)
    FrequencyBand(id=3, min_rank=3001, max_rank=8000, ratio=0.15, sparsity_factor=0.95),   # Intermediate (N3)
    FrequencyBand(id=4, min_rank=8001, max_rank=15000, ratio=0.15, sparsity_factor=0.9),   # Advanced (N2/N1)
    FrequencyBand(id=5, min_rank=15001, max_rank=25000, ratio=0.10, sparsity_factor=0.8),  # Native
    FrequencyBand(id=6, min_rank=25001, max_rank=40000, ratio=0.08, sparsity_factor=0.7),  # Expert
    FrequencyBand(id=7, min_rank=40001, max_rank=55000, ratio=0.07, sparsity_factor=0.6),  # Master
    FrequencyBand(id=8, min_rank=55001, max_rank=70000, ratio=0.05, sparsity_factor=0.5),  # Legend
]

# Số câu "đã biết" cần đạt ở mỗi band để chuyển sang band kế (streaming mode)
ADVANCE_THRESHOLDS: Sequence[int] = (30, 30, 35, 43, 54, 68, 68, 68)

# Lần refresh thứ N ở band kết thúc bài (6 => được refresh 5 lần)
REFRESH_CAPS: Sequence[int] = (6, 6, 6, 5, 4, 3, 3, 2)


# ============================
# Kiểm tra & nạp bảng band
# ============================

def validate_bands(bands: Sequence[FrequencyBand], ratio_tolerance: float = 1e-6) -> None:
    """
    Kiểm tra bảng band:
    - id tăng dần
    - các khoảng [min_rank, max_rank] liền nhau, không chồng lấn
    - tổng ratio = 1.0, sparsity_factor trong [0, 1]
    """
    if not bands:
        raise BandConfigError("Bảng band rỗng")

    prev: Optional[FrequencyBand] = None
    for band in bands:
        if band.min_rank > band.max_rank:
            raise BandConfigError(f"Band {band.id}: min_rank > max_rank")
        if not (0.0 <= band.sparsity_factor <= 1.0):
            raise BandConfigError(f"Band {band.id}: sparsity_factor ngoài [0, 1]")
        if band.ratio < 0:
            raise BandConfigError(f"Band {band.id}: ratio âm")
        if prev is not None:
            if band.id <= prev.id:
                raise BandConfigError(f"Band {band.id}: id phải tăng dần")
            if band.min_rank != prev.max_rank + 1:
                raise BandConfigError(
                    f"Band {band.id}: không liền với band {prev.id} "
                    f"({prev.max_rank} -> {band.min_rank})"
                )
        prev = band

    total = sum(b.ratio for b in bands)
    if abs(total - 1.0) > ratio_tolerance:
        raise BandConfigError(f"Tổng ratio phải = 1.0, đang là {total:.4f}")


def load_bands(path: str) -> List[FrequencyBand]:
    """Nạp bảng band từ JSON: [{id, minRank|min_rank, maxRank|max_rank, ratio, sparsityFactor?}]."""
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    bands = []
    for row in raw:
        bands.append(FrequencyBand(
            id=int(row["id"]),
            min_rank=int(row.get("min_rank", row.get("minRank"))),
            max_rank=int(row.get("max_rank", row.get("maxRank"))),
            ratio=float(row.get("ratio", 0.0)),
            sparsity_factor=float(row.get("sparsity_factor", row.get("sparsityFactor", 1.0))),
        ))
    bands.sort(key=lambda b: b.id)
    validate_bands(bands)
    return bands


def get_band(bands: Sequence[FrequencyBand], band_id: int) -> Optional[FrequencyBand]:
    for band in bands:
        if band.id == band_id:
            return band
    return None


def next_band_id(bands: Sequence[FrequencyBand], band_id: int) -> Optional[int]:
    """id của band hiếm hơn kế tiếp, None nếu đã là band cuối."""
    for band in bands:
        if band.id > band_id:
            return band.id
    return None


# ============================
# Phân bổ câu hỏi theo tỉ lệ
# ============================

def split_counts(total: int, weights: Mapping[K, float]) -> Dict[K, int]:
    """
    Chia `total` theo trọng số, phần dư làm tròn chia cho phần thập phân lớn nhất.
    Tổng kết quả luôn = total (khi có trọng số dương).
    """
    positive = {k: max(0.0, w) for k, w in weights.items()}
    s = sum(positive.values())
    if total <= 0 or s <= 0:
        return {k: 0 for k in weights}

    exact = {k: total * w / s for k, w in positive.items()}
    base = {k: int(math.floor(v)) for k, v in exact.items()}
    remain = total - sum(base.values())

    # phân dư theo phần thập phân lớn
    fracs = sorted(exact.keys(), key=lambda k: exact[k] - base[k], reverse=True)
    for k in fracs:
        if remain <= 0:
            break
        base[k] += 1
        remain -= 1
    return base


def allocate_questions(total: int, bands: Sequence[FrequencyBand]) -> Dict[int, int]:
    """Số câu cho mỗi band trong bài cố định (batch mode)."""
    return split_counts(total, {b.id: b.ratio for b in bands})


# ============================
# Ngưỡng theo band
# ============================

def _per_band(values: Sequence[int], band_id: int) -> int:
    idx = min(max(band_id, 1), len(values)) - 1
    return values[idx]


def advance_threshold(band_id: int, thresholds: Sequence[int] = ADVANCE_THRESHOLDS) -> int:
    return _per_band(thresholds, band_id)


def refresh_cap(band_id: int, caps: Sequence[int] = REFRESH_CAPS) -> int:
    return _per_band(caps, band_id)
