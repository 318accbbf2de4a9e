"""Tests for roundtable/groupthink.py."""

from roundtable.groupthink import (
    INDICATOR_CONFIDENCE,
    INDICATOR_HOMOGENEITY,
    INDICATOR_STANCE,
    detect_groupthink,
)
from tests.conftest import make_response

_SIMILAR = [
    "Remote work improves developer productivity",
    "Remote work improves developer productivity a lot",
    "Remote work clearly improves developer productivity",
]
_DIVERSE = [
    "Bananas taste sweet",
    "Kubernetes clusters need monitoring",
    "Quantum physics remains mysterious",
]


def _responses(positions, confidences, stance="YES"):
    return [
        make_response(f"agent{i}", p, c, stance)
        for i, (p, c) in enumerate(zip(positions, confidences))
    ]


def test_all_three_indicators():
    warning = detect_groupthink(_responses(_SIMILAR, [0.90, 0.88, 0.92]))
    assert warning.detected
    assert warning.indicators == [INDICATOR_CONFIDENCE, INDICATOR_STANCE, INDICATOR_HOMOGENEITY]
    assert "manual review" in warning.recommendation


def test_confidence_and_stance_only():
    warning = detect_groupthink(_responses(_DIVERSE, [0.90, 0.88, 0.92]))
    assert warning.detected
    assert warning.indicators == [INDICATOR_CONFIDENCE, INDICATOR_STANCE]
    assert "devil's advocate" in warning.recommendation


def test_single_indicator_is_not_groupthink():
    warning = detect_groupthink(_responses(_DIVERSE, [0.60, 0.70, 0.65]))
    assert not warning.detected
    assert warning.indicators == [INDICATOR_STANCE]
    assert warning.recommendation == ""


def test_stanceless_responses_are_not_dissent():
    responses = _responses(_DIVERSE, [0.9, 0.9, 0.9])
    responses[1] = make_response("agent1", _DIVERSE[1], 0.9, None)
    assert INDICATOR_STANCE in detect_groupthink(responses).indicators


def test_mixed_stances_dissent():
    responses = _responses(_SIMILAR, [0.9, 0.9, 0.9])
    responses[2] = make_response("agent2", _SIMILAR[2], 0.9, "NO")
    warning = detect_groupthink(responses)
    assert INDICATOR_STANCE not in warning.indicators
    assert warning.detected


def test_high_minimum_but_low_mean_does_not_fire():
    warning = detect_groupthink(_responses(_DIVERSE, [0.80, 0.82, 0.84], stance=None))
    assert warning.indicators == []


def test_fewer_than_two_responses():
    for responses in ([], [make_response(confidence=0.99, stance="YES")]):
        warning = detect_groupthink(responses)
        assert not warning.detected
        assert warning.indicators == []
        assert warning.recommendation == ""
