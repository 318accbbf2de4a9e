"""Decide after each round whether the debate can stop early.

Checks run in a fixed order and the first match wins:
max_rounds, consensus, convergence, confidence.
"""

import logging
import statistics
from collections.abc import Sequence

from roundtable.lexicon import DEFAULT_LEXICON, StanceLexicon
from roundtable.models import ExitCriteria, ExitResult, Response, RoundResult
from roundtable.text import jaccard, keyword_stems

logger = logging.getLogger(__name__)

DEFAULT_CONSENSUS_THRESHOLD = 0.9
DEFAULT_CONVERGENCE_ROUNDS = 2
DEFAULT_CONFIDENCE_THRESHOLD = 0.85

MAX_CONFIDENCE_DELTA = 0.1
MIN_KEYWORD_OVERLAP = 0.7


def default_exit_criteria(max_rounds: int) -> ExitCriteria:
    return ExitCriteria(
        max_rounds=max_rounds,
        consensus_threshold=DEFAULT_CONSENSUS_THRESHOLD,
        convergence_rounds=DEFAULT_CONVERGENCE_ROUNDS,
        confidence_threshold=DEFAULT_CONFIDENCE_THRESHOLD,
    )


def validate_exit_criteria(criteria: ExitCriteria) -> list[str]:
    """Return a list of problems; empty when the criteria are usable."""
    errors: list[str] = []
    if criteria.max_rounds < 1:
        errors.append("max_rounds must be at least 1")
    if not 0.0 <= criteria.consensus_threshold <= 1.0:
        errors.append("consensus_threshold must be between 0 and 1")
    if criteria.convergence_rounds < 2:
        errors.append("convergence_rounds must be at least 2")
    if not 0.0 <= criteria.confidence_threshold <= 1.0:
        errors.append("confidence_threshold must be between 0 and 1")
    return errors


def round_keywords(responses: Sequence[Response], lexicon: StanceLexicon = DEFAULT_LEXICON) -> set[str]:
    """Union of the position keywords of every response in a round."""
    stems: set[str] = set()
    for response in responses:
        stems |= keyword_stems(response.position, lexicon)
    return stems


def _mean_confidence(responses: Sequence[Response]) -> float:
    return statistics.fmean(r.confidence for r in responses)


def check_convergence(
    history: Sequence[RoundResult],
    rounds: int,
    lexicon: StanceLexicon = DEFAULT_LEXICON,
) -> tuple[bool, str]:
    """Whether the last ``rounds`` rounds are stable, plus a short explanation.

    Every consecutive pair in the window must move mean confidence by less
    than 0.1 and keep keyword overlap above 0.7.
    """
    rounds = max(rounds, 2)
    if len(history) < rounds:
        return False, f"Need {rounds} rounds to judge convergence, have {len(history)}"

    window = history[-rounds:]
    if any(not r.responses for r in window):
        return False, "A round in the convergence window has no responses"

    for previous, current in zip(window, window[1:]):
        delta = abs(_mean_confidence(current.responses) - _mean_confidence(previous.responses))
        if delta >= MAX_CONFIDENCE_DELTA:
            return False, (
                f"Confidence moved {delta:.2f} between rounds "
                f"{previous.round_number} and {current.round_number}"
            )
        overlap = jaccard(round_keywords(previous.responses, lexicon), round_keywords(current.responses, lexicon))
        if overlap <= MIN_KEYWORD_OVERLAP:
            return False, (
                f"Positions shifted between rounds {previous.round_number} and "
                f"{current.round_number} (keyword overlap {overlap:.2f})"
            )
    return True, f"Positions and confidence stable across the last {rounds} rounds"


def check_exit_criteria(
    history: Sequence[RoundResult],
    criteria: ExitCriteria,
    lexicon: StanceLexicon = DEFAULT_LEXICON,
) -> ExitResult:
    """Evaluate ``criteria`` against the rounds played so far (oldest first)."""
    if not history:
        return ExitResult(should_exit=False, reason=None, details="No rounds to evaluate")

    latest = history[-1]
    current_round = latest.round_number

    if current_round >= criteria.max_rounds:
        return ExitResult(
            should_exit=True,
            reason="max_rounds",
            details=f"Maximum rounds reached ({current_round}/{criteria.max_rounds})",
        )

    if latest.consensus is not None and latest.consensus.agreement_level >= criteria.consensus_threshold:
        return ExitResult(
            should_exit=True,
            reason="consensus",
            details=(
                f"Consensus reached with {latest.consensus.agreement_level:.1%} agreement "
                f"(threshold: {criteria.consensus_threshold:.1%})"
            ),
        )

    converged, convergence_details = check_convergence(history, criteria.convergence_rounds, lexicon)
    if converged:
        return ExitResult(should_exit=True, reason="convergence", details=convergence_details)
    logger.debug("No convergence at round %d: %s", current_round, convergence_details)

    responses = latest.responses
    if responses and all(r.confidence >= criteria.confidence_threshold for r in responses):
        return ExitResult(
            should_exit=True,
            reason="confidence",
            details=(
                f"All {len(responses)} agents are confident "
                f"(avg: {_mean_confidence(responses):.1%}, threshold: {criteria.confidence_threshold:.1%})"
            ),
        )

    return ExitResult(
        should_exit=False,
        reason=None,
        details=f"Continue debate: round {current_round}/{criteria.max_rounds}",
    )
