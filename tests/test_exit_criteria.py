"""Tests for roundtable/exit_criteria.py."""

import pytest

from roundtable.exit_criteria import (
    check_convergence,
    check_exit_criteria,
    default_exit_criteria,
    round_keywords,
    validate_exit_criteria,
)
from roundtable.models import ConsensusResult, ExitCriteria, RoundResult
from tests.conftest import make_response

_POSITION = "Remote work improves developer productivity"


def _round(number, confidences=(0.6, 0.6), agreement=0.5, position=_POSITION):
    return RoundResult(
        round_number=number,
        responses=[make_response(f"a{i}", position, c) for i, c in enumerate(confidences)],
        consensus=ConsensusResult(agreement_level=agreement),
    )


@pytest.fixture
def criteria():
    return default_exit_criteria(max_rounds=5)


def test_defaults(criteria):
    assert criteria == ExitCriteria(5, 0.9, 2, 0.85)
    assert validate_exit_criteria(criteria) == []


def test_validation_collects_every_problem():
    errors = validate_exit_criteria(ExitCriteria(0, 1.5, 1, -0.1))
    assert errors == [
        "max_rounds must be at least 1",
        "consensus_threshold must be between 0 and 1",
        "convergence_rounds must be at least 2",
        "confidence_threshold must be between 0 and 1",
    ]


def test_empty_history(criteria):
    result = check_exit_criteria([], criteria)
    assert not result.should_exit
    assert result.reason is None
    assert result.details == "No rounds to evaluate"


def test_max_rounds_wins_over_everything(criteria):
    result = check_exit_criteria([_round(5, (0.95, 0.95), agreement=1.0)], criteria)
    assert result.should_exit
    assert result.reason == "max_rounds"
    assert "5/5" in result.details


def test_consensus_at_threshold(criteria):
    result = check_exit_criteria([_round(1, agreement=0.9)], criteria)
    assert result.reason == "consensus"
    assert "90.0%" in result.details


def test_consensus_beats_confidence(criteria):
    result = check_exit_criteria([_round(1, (0.95, 0.95), agreement=0.95)], criteria)
    assert result.reason == "consensus"


def test_convergence_on_stable_rounds(criteria):
    history = [_round(1, (0.6, 0.6)), _round(2, (0.62, 0.65))]
    result = check_exit_criteria(history, criteria)
    assert result.should_exit
    assert result.reason == "convergence"


def test_convergence_beats_confidence(criteria):
    history = [_round(1, (0.9, 0.9)), _round(2, (0.9, 0.92))]
    assert check_exit_criteria(history, criteria).reason == "convergence"


def test_no_convergence_when_confidence_moves(criteria):
    history = [_round(1, (0.4, 0.4)), _round(2, (0.6, 0.6))]
    result = check_exit_criteria(history, criteria)
    assert not result.should_exit
    assert result.details == "Continue debate: round 2/5"


def test_no_convergence_when_positions_shift():
    history = [_round(1), _round(2, position="Bananas taste sweet")]
    converged, details = check_convergence(history, 2)
    assert not converged
    assert "keyword overlap 0.00" in details


def test_convergence_needs_enough_rounds():
    converged, details = check_convergence([_round(1)], 2)
    assert not converged
    assert details == "Need 2 rounds to judge convergence, have 1"


def test_convergence_window_of_three():
    history = [
        _round(1, (0.3, 0.3)),
        _round(2, (0.6, 0.6)),
        _round(3, (0.62, 0.62)),
        _round(4, (0.64, 0.64)),
    ]
    assert check_convergence(history, 3)[0]
    assert not check_convergence(history, 4)[0]


def test_convergence_window_is_at_least_two():
    history = [_round(1), _round(2)]
    assert check_convergence(history, 1)[0]
    assert check_convergence(history, 0)[0]


def test_convergence_rejects_empty_round_in_window():
    history = [_round(1), RoundResult(round_number=2)]
    assert not check_convergence(history, 2)[0]


def test_confidence_exit(criteria):
    history = [_round(1, (0.4, 0.4)), _round(2, (0.9, 0.86))]
    result = check_exit_criteria(history, criteria)
    assert result.reason == "confidence"
    assert "All 2 agents are confident" in result.details


def test_confidence_requires_every_agent(criteria):
    history = [_round(1, (0.4, 0.4)), _round(2, (0.9, 0.84))]
    assert not check_exit_criteria(history, criteria).should_exit


def test_round_without_responses_does_not_exit_on_confidence(criteria):
    result = check_exit_criteria([RoundResult(round_number=1)], criteria)
    assert not result.should_exit


def test_round_keywords_is_union():
    responses = [make_response("a", "YAML configs"), make_response("b", "JSON configs")]
    assert round_keywords(responses) == {"yaml", "json", "config"}
