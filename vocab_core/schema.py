# vocab_core/schema.py

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Dict, Optional, Any


class JlptLevel(Enum):
    """Cấp JLPT gắn với từ (tag "5".."1" trong bảng jlpt)."""
    N5 = "5"
    N4 = "4"
    N3 = "3"
    N2 = "2"
    N1 = "1"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> Optional["JlptLevel"]:
        if tag is None:
            return None
        value = str(tag).strip()
        if value.upper().startswith("N"):
            value = value[1:]
        for level in cls:
            if level.value == value:
                return level
        return None


class LearnerType(Enum):
    BEGINNER = "BEGINNER"
    BALANCED = "BALANCED"
    IMMERSION = "IMMERSION"
    ACADEMIC = "ACADEMIC"


@dataclass(frozen=True)
class Word:
    """
    Một từ trong kho tần suất:
    - id: thứ hạng tần suất (1..N, duy nhất)
    - text: mặt chữ
    - level: cấp JLPT nếu tra được tag (tra theo mặt chữ, không theo id)
    """
    id: int
    text: str
    level: Optional[JlptLevel] = None


@dataclass(frozen=True)
class FrequencyBand:
    """
    Một tầng tần suất [min_rank, max_rank]:
    - ratio: phần câu hỏi dành cho band trong bài cố định (tổng = 1.0)
    - sparsity_factor: hệ số co kích thước band khi ngoại suy (0..1)
    """
    id: int
    min_rank: int
    max_rank: int
    ratio: float = 0.0
    sparsity_factor: float = 1.0

    @property
    def size(self) -> int:
        return self.max_rank - self.min_rank + 1


@dataclass(frozen=True)
class TestItem:
    __test__ = False  # không phải test class của pytest

    id: int
    band_id: int


@dataclass(frozen=True)
class AnswerRecord:
    id: int
    band_id: int
    is_known: bool


@dataclass
class BandDetail:
    band_id: int
    start_rank: int
    end_rank: int
    total_in_band: int
    known_in_band: int
    predicted_in_band: int
    raw_ratio: float = 0.0
    final_ratio: float = 0.0
    dropped: bool = False


@dataclass
class CompetencyRadar:
    """Radar năng lực, mỗi trục là phần trăm 0..100."""
    survival: int = 0
    formal: int = 0
    culture: int = 0
    literary: int = 0
    complexity: int = 0


@dataclass
class JlptScore:
    level: str  # N5 .. N1
    score: int  # phần trăm 0..100
    total: int
    known: int


@dataclass
class AnalysisReport:
    summary: str
    practical: str
    advice: str
    warning: str = ""


@dataclass
class TestResult:
    """
    Kết quả cuối của một phiên kiểm tra (schema hợp nhất các phiên bản cũ).
    """
    __test__ = False

    total_predicted: int
    total_questions: int
    jlpt_level: str
    cefr_level: str
    age_equivalent: str
    literacy_description: str
    learner_type: LearnerType
    radar: CompetencyRadar
    details: List[BandDetail] = field(default_factory=list)
    jlpt_scores: List[JlptScore] = field(default_factory=list)
    analysis: Optional[AnalysisReport] = None

    def detail_for(self, band_id: int) -> Optional[BandDetail]:
        for d in self.details:
            if d.band_id == band_id:
                return d
        return None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["learner_type"] = self.learner_type.value
        return out
