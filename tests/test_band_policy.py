# tests/test_band_policy.py

import json

import pytest

from vocab_core.band_policy import (
    DEFAULT_BANDS,
    advance_threshold,
    allocate_questions,
    load_bands,
    next_band_id,
    refresh_cap,
    split_counts,
    validate_bands,
)
from vocab_core.errors import BandConfigError
from vocab_core.schema import FrequencyBand


def test_default_bands_partition_ranks():
    validate_bands(DEFAULT_BANDS)

    assert DEFAULT_BANDS[0].min_rank == 1
    assert DEFAULT_BANDS[-1].max_rank == 70000
    for prev, band in zip(DEFAULT_BANDS, DEFAULT_BANDS[1:]):
        # Các khoảng liền nhau, không chồng lấn
        assert band.min_rank == prev.max_rank + 1, f"Band {band.id} không liền với band {prev.id}"

    assert sum(b.size for b in DEFAULT_BANDS) == 70000
    assert abs(sum(b.ratio for b in DEFAULT_BANDS) - 1.0) < 1e-9


def test_validate_rejects_gap_overlap_and_ratio():
    with pytest.raises(BandConfigError):
        validate_bands([FrequencyBand(1, 1, 100, 0.5), FrequencyBand(2, 102, 200, 0.5)])

    with pytest.raises(BandConfigError):
        validate_bands([FrequencyBand(1, 1, 100, 0.5), FrequencyBand(2, 90, 200, 0.5)])

    with pytest.raises(BandConfigError):
        validate_bands([FrequencyBand(1, 1, 100, 0.5), FrequencyBand(2, 101, 200, 0.4)])

    with pytest.raises(ValueError):
        validate_bands([])


def test_allocate_questions_by_ratio():
    counts = allocate_questions(100, DEFAULT_BANDS)
    assert counts == {1: 20, 2: 20, 3: 15, 4: 15, 5: 10, 6: 8, 7: 7, 8: 5}

    for total in (7, 200, 333, 500):
        assert sum(allocate_questions(total, DEFAULT_BANDS).values()) == total, \
            f"Tổng số câu phân bổ phải = {total}"


def test_split_counts_largest_remainder():
    counts = split_counts(10, {"a": 1, "b": 1, "c": 1})
    assert sum(counts.values()) == 10
    assert max(counts.values()) - min(counts.values()) <= 1

    assert split_counts(0, {"a": 1}) == {"a": 0}
    assert split_counts(5, {"a": 0, "b": 0}) == {"a": 0, "b": 0}


def test_per_band_thresholds_clamp_to_last():
    assert advance_threshold(1) == 30
    assert advance_threshold(4) == 43
    assert advance_threshold(8) == 68
    assert advance_threshold(12) == 68

    assert refresh_cap(1) == 6
    assert refresh_cap(3) == 6
    assert refresh_cap(8) == 2
    assert refresh_cap(20) == 2


def test_next_band_id():
    assert next_band_id(DEFAULT_BANDS, 3) == 4
    assert next_band_id(DEFAULT_BANDS, 8) is None


def test_load_bands_from_json(tmp_path):
    path = tmp_path / "bands.json"
    path.write_text(json.dumps([
        {"id": 2, "minRank": 501, "maxRank": 1000, "ratio": 0.4, "sparsityFactor": 0.8},
        {"id": 1, "min_rank": 1, "max_rank": 500, "ratio": 0.6},
    ]), encoding="utf-8")

    bands = load_bands(str(path))
    assert [b.id for b in bands] == [1, 2], "Band phải được sắp theo id"
    assert bands[1].sparsity_factor == 0.8
    assert bands[0].sparsity_factor == 1.0

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps([{"id": 1, "minRank": 1, "maxRank": 10, "ratio": 0.5}]), encoding="utf-8")
    with pytest.raises(BandConfigError):
        load_bands(str(bad))
