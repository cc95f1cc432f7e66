"""Tests for L-Score calculation."""

import math

import pytest
from pydantic import ValidationError

from lineage_memory.provenance.lscore import (
    LScoreCalculator,
    LScoreConfig,
    arithmetic_mean,
    geometric_mean,
    harmonic_mean,
)


@pytest.fixture
def calc():
    return LScoreCalculator(LScoreConfig(depth_decay=0.9, min_score=0.01))


def test_root_depth_scores_one(calc):
    assert calc.calculate([0.1, 0.2], [0.1, 0.1], depth=0) == 1.0


def test_empty_confidences_scores_one(calc):
    assert calc.calculate([], [], depth=3) == 1.0


def test_geometric_mean_single_value():
    assert geometric_mean([0.37]) == pytest.approx(0.37)


def test_geometric_mean_all_ones():
    assert geometric_mean([1.0, 1.0, 1.0, 1.0]) == pytest.approx(1.0)


def test_geometric_mean_with_zero_does_not_raise():
    """log(0) is avoided by flooring at a tiny epsilon."""
    assert geometric_mean([0.0, 1.0]) == pytest.approx(math.sqrt(1e-10))


def test_calculate_formula(calc):
    """score = geo(confidences) * mean(relevances) * decay ** depth"""
    score = calc.calculate([0.8, 1.0], [0.9, 1.0], depth=1)
    expected = math.sqrt(0.8) * 0.95 * 0.9
    assert score == pytest.approx(expected)


def test_calculate_explicit_decay_overrides_config(calc):
    score = calc.calculate([1.0], [1.0], depth=2, decay=0.5)
    assert score == pytest.approx(0.25)


def test_calculate_clamped_to_min_score(calc):
    score = calc.calculate([0.01], [0.01], depth=10)
    assert score == 0.01


def test_score_non_increasing_with_depth(calc):
    scores = [calc.calculate([0.9, 0.8], [0.9, 0.7], depth=d) for d in range(1, 12)]
    assert all(later <= earlier for earlier, later in zip(scores, scores[1:]))


def test_weak_link_dominates_geometric_mean(calc):
    """One weak step pulls the score down more than an arithmetic mean would."""
    confidences = [1.0, 1.0, 0.1]
    assert geometric_mean(confidences) < arithmetic_mean(confidences)


def test_aggregate_empty_is_one(calc):
    assert calc.aggregate_from_parents([]) == 1.0


def test_aggregate_single_is_identity(calc):
    assert calc.aggregate_from_parents([0.42]) == 0.42


def test_aggregate_uses_harmonic_mean(calc):
    assert calc.aggregate_from_parents([0.5, 1.0]) == pytest.approx(2 / (2 + 1))


def test_aggregate_pulled_towards_low_value(calc):
    aggregate = calc.aggregate_from_parents([1.0, 0.05])
    assert aggregate < arithmetic_mean([1.0, 0.05])
    assert aggregate == pytest.approx(harmonic_mean([1.0, 0.05]))


def test_aggregate_with_zero_is_clamped(calc):
    assert calc.aggregate_from_parents([0.0, 1.0]) == 0.01


def test_calculate_incremental_derivation_from_root(calc):
    """Root parent (1.0) * confidence 0.8 * relevance 0.9 * decay 0.9"""
    assert calc.calculate_incremental(1.0, 0.8, 0.9) == pytest.approx(0.648)


def test_calculate_incremental_clamped(calc):
    assert calc.calculate_incremental(0.01, 0.01, 0.01) == 0.01


def test_is_reliable(calc):
    assert calc.is_reliable(0.5)
    assert not calc.is_reliable(0.49)
    assert calc.is_reliable(0.3, threshold=0.2)


def test_meets_threshold_uses_config():
    calc = LScoreCalculator(LScoreConfig(threshold=0.3))
    assert calc.meets_threshold(0.3)
    assert not calc.meets_threshold(0.29)


@pytest.mark.parametrize(
    "score,category",
    [
        (1.0, "high"),
        (0.8, "high"),
        (0.79, "medium"),
        (0.5, "medium"),
        (0.49, "low"),
        (0.2, "low"),
        (0.19, "unreliable"),
        (0.0, "unreliable"),
    ],
)
def test_reliability_categories(calc, score, category):
    assert calc.get_reliability_category(score) == category


def test_default_config():
    config = LScoreConfig()
    assert config.depth_decay == 0.9
    assert config.min_score == 0.01
    assert config.threshold == 0.3
    assert config.enforce_threshold is True


def test_config_rejects_zero_decay():
    with pytest.raises(ValidationError):
        LScoreConfig(depth_decay=0.0)
