# vocab_core/scoring.py

"""
Chấm điểm: từ lịch sử trả lời thưa (biết / không biết) ngoại suy tổng số từ.

Các bước:
    1) Tỉ lệ biết theo band (thô)
    2) Phân loại kiểu người học (dùng tỉ lệ thô)
    3) Guillotine: band >= 3 đầu tiên dưới ngưỡng trượt => cắt nó và mọi band hiếm hơn
    4) Giảm dao động cho band >= 4 khi bài ngắn
    5) Hệ số thưa thớt (chỉ batch mode)
    6) Ngoại suy số từ mỗi band, cộng tổng
    7) Radar năng lực, 8) Quy đổi cấp độ
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .band_policy import DEFAULT_BANDS
from .levels import build_analysis_report, map_levels
from .schema import (
    AnswerRecord,
    BandDetail,
    CompetencyRadar,
    FrequencyBand,
    JlptLevel,
    JlptScore,
    LearnerType,
    TestResult,
    Word,
)
from .word_filter import is_compound


@dataclass(frozen=True)
class ScoringParams:
    """Các hằng số thực nghiệm của công thức chấm điểm."""
    failure_threshold: float = 0.3
    guillotine_start_band: int = 3

    damping_start_band: int = 4
    damping_steps: Tuple[Tuple[int, float], ...] = ((100, 0.6), (200, 0.85))

    foundation_bands: Tuple[int, ...] = (1, 2, 3, 4)
    advanced_bands: Tuple[int, ...] = (5, 6, 7)
    min_pass: Tuple[Tuple[int, float], ...] = ((1, 0.5), (2, 0.4))
    balanced_foundation: float = 0.85
    balanced_advanced: float = 0.50
    immersion_signals: Tuple[Tuple[int, float], ...] = ((6, 0.15), (7, 0.05), (5, 0.30))
    immersion_ratio: float = 0.40

    radar_axes: Tuple[Tuple[str, Tuple[int, ...]], ...] = (
        ("survival", (1, 2)),
        ("formal", (3, 4)),
        ("culture", (5, 6)),
        ("literary", (7, 8)),
    )

    min_coverage_for_higher_jlpt: int = 3500
    jlpt_min_samples: int = 3
    jlpt_proficiency_score: int = 60


DEFAULT_PARAMS = ScoringParams()

_JLPT_ORDER = (JlptLevel.N5, JlptLevel.N4, JlptLevel.N3, JlptLevel.N2, JlptLevel.N1)
_HIGHER_JLPT = ("N3", "N2", "N1")


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _percent(known: int, total: int) -> int:
    if total <= 0:
        return 0
    return round_half_up(known * 100 / total)


# ============================
# Thống kê theo band
# ============================

def band_stats(history: Sequence[AnswerRecord], bands: Sequence[FrequencyBand]) -> Dict[int, Tuple[int, int]]:
    """{band_id: (known, total)}; band không có câu nào => (0, 0)."""
    stats = {b.id: [0, 0] for b in bands}
    for rec in history:
        if rec.band_id not in stats:
            continue
        stats[rec.band_id][1] += 1
        if rec.is_known:
            stats[rec.band_id][0] += 1
    return {k: (v[0], v[1]) for k, v in stats.items()}


def raw_ratios(stats: Mapping[int, Tuple[int, int]]) -> Dict[int, float]:
    return {bid: (known / total if total > 0 else 0.0) for bid, (known, total) in stats.items()}


# ============================
# Phân loại kiểu người học
# ============================

def classify_learner(ratios: Mapping[int, float], params: ScoringParams = DEFAULT_PARAMS) -> LearnerType:
    """
    Dựa trên tỉ lệ thô (trước guillotine):
    - BEGINNER: band 1/2 chưa qua ngưỡng tối thiểu
    - BALANCED: nền tảng rất chắc và band hiếm cũng tốt
    - IMMERSION: có "tín hiệu" biết từ hiếm vượt trội so với nền tảng
    - ACADEMIC: còn lại (nền chắc, từ hiếm ít)
    """
    def r(band_id: int) -> float:
        return ratios.get(band_id, 0.0)

    for band_id, min_ratio in params.min_pass:
        if not r(band_id) > min_ratio:
            return LearnerType.BEGINNER

    foundation = sum(r(b) for b in params.foundation_bands) / max(1, len(params.foundation_bands))
    advanced = sum(r(b) for b in params.advanced_bands) / max(1, len(params.advanced_bands))

    if foundation > params.balanced_foundation and advanced > params.balanced_advanced:
        return LearnerType.BALANCED

    if any(r(b) > limit for b, limit in params.immersion_signals):
        return LearnerType.IMMERSION
    if advanced / max(0.1, foundation) > params.immersion_ratio:
        return LearnerType.IMMERSION

    return LearnerType.ACADEMIC


# ============================
# Guillotine & giảm dao động
# ============================

def guillotine(
    ratios: Mapping[int, float],
    bands: Sequence[FrequencyBand],
    params: ScoringParams = DEFAULT_PARAMS,
) -> Set[int]:
    """Tập band bị cắt: từ band >= guillotine_start_band đầu tiên có ratio < ngưỡng trở đi."""
    dropped: Set[int] = set()
    cut = False
    for band in sorted(bands, key=lambda b: b.id):
        if not cut and band.id >= params.guillotine_start_band:
            if ratios.get(band.id, 0.0) < params.failure_threshold:
                cut = True
        if cut:
            dropped.add(band.id)
    return dropped


def volatility_damping(total_questions: int, params: ScoringParams = DEFAULT_PARAMS) -> float:
    for max_questions, factor in sorted(params.damping_steps):
        if total_questions <= max_questions:
            return factor
    return 1.0


# ============================
# Radar & điểm JLPT
# ============================

def competency_radar(
    history: Sequence[AnswerRecord],
    words: Mapping[int, Word],
    stats: Mapping[int, Tuple[int, int]],
    dropped: Set[int],
    params: ScoringParams = DEFAULT_PARAMS,
) -> CompetencyRadar:
    """Mỗi trục dùng số liệu sau guillotine (band bị cắt coi như không biết từ nào)."""
    axes: Dict[str, int] = {}
    for name, band_ids in params.radar_axes:
        known = sum(stats.get(b, (0, 0))[0] for b in band_ids if b not in dropped)
        total = sum(stats.get(b, (0, 0))[1] for b in band_ids)
        axes[name] = _percent(known, total)

    compound_total = 0
    compound_known = 0
    for rec in history:
        word = words.get(rec.id)
        if word is None or not is_compound(word.text):
            continue
        compound_total += 1
        if rec.is_known and rec.band_id not in dropped:
            compound_known += 1

    return CompetencyRadar(
        survival=axes.get("survival", 0),
        formal=axes.get("formal", 0),
        culture=axes.get("culture", 0),
        literary=axes.get("literary", 0),
        complexity=_percent(compound_known, compound_total),
    )


def jlpt_tag_scores(
    history: Sequence[AnswerRecord],
    words: Mapping[int, Word],
    total_predicted: int,
    params: ScoringParams = DEFAULT_PARAMS,
) -> List[JlptScore]:
    """
    Độ chính xác theo tag JLPT của từ đã hỏi.
    N3-N1 bị đưa về 0 nếu vốn từ quá nhỏ hoặc nền N5/N4 chưa vững.
    """
    counts = {level: [0, 0] for level in _JLPT_ORDER}
    for rec in history:
        word = words.get(rec.id)
        if word is None or word.level is None:
            continue
        counts[word.level][1] += 1
        if rec.is_known:
            counts[word.level][0] += 1

    scores = [
        JlptScore(level=level.name, score=_percent(k, t), total=t, known=k)
        for level, (k, t) in counts.items()
    ]

    def proficient(name: str) -> bool:
        s = next(x for x in scores if x.level == name)
        return s.score >= params.jlpt_proficiency_score and s.total >= params.jlpt_min_samples

    weak_foundation = not (proficient("N5") and proficient("N4"))
    if total_predicted <= params.min_coverage_for_higher_jlpt or weak_foundation:
        for s in scores:
            if s.level in _HIGHER_JLPT:
                s.score = 0
    return scores


# ============================
# API chính
# ============================

def score_test(
    history: Sequence[AnswerRecord],
    words: Mapping[int, Word],
    total_questions: Optional[int] = None,
    *,
    bands: Sequence[FrequencyBand] = DEFAULT_BANDS,
    params: ScoringParams = DEFAULT_PARAMS,
    apply_sparsity: bool = False,
) -> TestResult:
    """
    Hàm thuần: cùng đầu vào luôn cho cùng TestResult.

    Tham số:
        history: toàn bộ AnswerRecord của phiên
        words: tra cứu id -> Word (mặt chữ + tag JLPT)
        total_questions: số câu đã hỏi (mặc định = len(history))
        apply_sparsity: nhân kích thước band với sparsity_factor (batch mode)
    """
    if total_questions is None:
        total_questions = len(history)

    ordered = sorted(bands, key=lambda b: b.id)
    stats = band_stats(history, ordered)
    ratios = raw_ratios(stats)

    learner_type = classify_learner(ratios, params)
    dropped = guillotine(ratios, ordered, params)
    damping = volatility_damping(total_questions, params)

    details: List[BandDetail] = []
    total_predicted = 0
    for band in ordered:
        known, total = stats[band.id]
        raw = ratios[band.id]

        if band.id in dropped:
            final_ratio = 0.0
            known_kept = 0
        else:
            final_ratio = raw * damping if band.id >= params.damping_start_band else raw
            known_kept = known

        size = band.size * band.sparsity_factor if apply_sparsity else band.size
        predicted = round_half_up(final_ratio * size) if total > 0 else 0
        total_predicted += predicted

        details.append(BandDetail(
            band_id=band.id,
            start_rank=band.min_rank,
            end_rank=band.max_rank,
            total_in_band=total,
            known_in_band=known_kept,
            predicted_in_band=predicted,
            raw_ratio=raw,
            final_ratio=final_ratio,
            dropped=band.id in dropped,
        ))

    radar = competency_radar(history, words, stats, dropped, params)
    levels = map_levels(total_predicted, learner_type)

    first = stats.get(ordered[0].id) if ordered else None
    band1_ratio = first[0] / first[1] if first and first[1] > 0 else None

    return TestResult(
        total_predicted=total_predicted,
        total_questions=total_questions,
        jlpt_level=levels["jlpt_level"],
        cefr_level=levels["cefr_level"],
        age_equivalent=levels["age_equivalent"],
        literacy_description=levels["literacy_description"],
        learner_type=learner_type,
        radar=radar,
        details=details,
        jlpt_scores=jlpt_tag_scores(history, words, total_predicted, params),
        analysis=build_analysis_report(total_predicted, band1_ratio),
    )
