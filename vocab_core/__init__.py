# vocab_core/__init__.py

"""
Core module cho hệ thống ước lượng vốn từ tiếng Nhật

Bao gồm:
- Schema chuẩn cho Word, FrequencyBand, AnswerRecord, TestResult
- Adapter kho từ (REST / bộ nhớ) và retry backoff
- Bộ lấy mẫu theo band tần suất + bộ lọc từ hợp lệ (ưu tiên jukugo)
- Quản lý phiên (streaming / batch) và thuật toán chấm điểm

Các thành phần xuất khẩu phổ biến:
    Word, FrequencyBand, TestItem, AnswerRecord, TestResult
    CandidateSampler, StreamingSession, BatchSession
    score_test, is_valid_word, with_retry
"""

# Schema models
from .schema import (
    Word,
    JlptLevel,
    LearnerType,
    FrequencyBand,
    TestItem,
    AnswerRecord,
    BandDetail,
    CompetencyRadar,
    JlptScore,
    AnalysisReport,
    TestResult,
)

# Errors
from .errors import (
    VocabError,
    LookupFailure,
    InsufficientPool,
    BandConfigError,
)

# Band table & allocation
from .band_policy import (
    DEFAULT_BANDS,
    validate_bands,
    load_bands,
    split_counts,
    allocate_questions,
    advance_threshold,
    refresh_cap,
)

# Word validity
from .word_filter import (
    is_valid_word,
    is_compound,
    prioritize_compounds,
)

# Word store & retry
from .word_store import (
    WordStore,
    SupabaseWordStore,
    InMemoryWordStore,
    load_word_bank,
)
from .retry import (
    RetryPolicy,
    with_retry,
)

# Sampling
from .sampler import (
    CandidateSampler,
    SampleResult,
    sample_with_retry,
    require_full,
)

# Scoring
from .scoring import (
    ScoringParams,
    score_test,
)

# Sessions
from .session import (
    AppState,
    SessionState,
    TestMode,
    TEST_MODES,
    StreamingSession,
    BatchSession,
)


__all__ = [
    # Schema
    "Word",
    "JlptLevel",
    "LearnerType",
    "FrequencyBand",
    "TestItem",
    "AnswerRecord",
    "BandDetail",
    "CompetencyRadar",
    "JlptScore",
    "AnalysisReport",
    "TestResult",

    # Errors
    "VocabError",
    "LookupFailure",
    "InsufficientPool",
    "BandConfigError",

    # Bands
    "DEFAULT_BANDS",
    "validate_bands",
    "load_bands",
    "split_counts",
    "allocate_questions",
    "advance_threshold",
    "refresh_cap",

    # Filter
    "is_valid_word",
    "is_compound",
    "prioritize_compounds",

    # Store & retry
    "WordStore",
    "SupabaseWordStore",
    "InMemoryWordStore",
    "load_word_bank",
    "RetryPolicy",
    "with_retry",

    # Sampler
    "CandidateSampler",
    "SampleResult",
    "sample_with_retry",
    "require_full",

    # Scoring
    "ScoringParams",
    "score_test",

    # Sessions
    "AppState",
    "SessionState",
    "TestMode",
    "TEST_MODES",
    "StreamingSession",
    "BatchSession",
]
