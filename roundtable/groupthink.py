"""Flag rounds where agreement came too easily."""

import itertools
import logging
import statistics
from collections.abc import Sequence

from roundtable.lexicon import DEFAULT_LEXICON, StanceLexicon
from roundtable.models import GroupthinkWarning, Response
from roundtable.text import position_similarity

logger = logging.getLogger(__name__)

MIN_INDICATORS = 2
HIGH_CONFIDENCE = 0.8
MEAN_HIGH_CONFIDENCE = 0.85
HOMOGENEITY_THRESHOLD = 0.5

INDICATOR_CONFIDENCE = "All agents show high confidence (>=80%)"
INDICATOR_STANCE = "No dissenting stances detected"
INDICATOR_HOMOGENEITY = "Position similarity is unusually high"

_RECOMMEND_DEVILS_ADVOCATE = (
    "Consider an additional round with a devil's advocate role to stress-test the consensus"
)
_RECOMMEND_MANUAL_REVIEW = (
    "All groupthink indicators fired: manual review of the conclusion is required before acting on it"
)


def _uniform_high_confidence(responses: Sequence[Response]) -> bool:
    return (
        all(r.confidence >= HIGH_CONFIDENCE for r in responses)
        and statistics.fmean(r.confidence for r in responses) >= MEAN_HIGH_CONFIDENCE
    )


def _no_dissenting_stance(responses: Sequence[Response]) -> bool:
    # responses without a stance neither agree nor dissent
    stances = {r.stance for r in responses if r.stance}
    return len(stances) == 1


def average_pairwise_similarity(
    responses: Sequence[Response],
    lexicon: StanceLexicon = DEFAULT_LEXICON,
) -> float:
    pairs = list(itertools.combinations(responses, 2))
    if not pairs:
        return 0.0
    return statistics.fmean(position_similarity(a.position, b.position, lexicon) for a, b in pairs)


def detect_groupthink(
    responses: Sequence[Response],
    lexicon: StanceLexicon = DEFAULT_LEXICON,
) -> GroupthinkWarning:
    """Detected when at least two of the three indicators fire.

    Fewer than two responses never count as groupthink.
    """
    if len(responses) < 2:
        return GroupthinkWarning(detected=False)

    indicators: list[str] = []
    if _uniform_high_confidence(responses):
        indicators.append(INDICATOR_CONFIDENCE)
    if _no_dissenting_stance(responses):
        indicators.append(INDICATOR_STANCE)
    if average_pairwise_similarity(responses, lexicon) > HOMOGENEITY_THRESHOLD:
        indicators.append(INDICATOR_HOMOGENEITY)

    detected = len(indicators) >= MIN_INDICATORS
    if not detected:
        return GroupthinkWarning(detected=False, indicators=indicators)

    recommendation = (
        _RECOMMEND_MANUAL_REVIEW if len(indicators) > MIN_INDICATORS else _RECOMMEND_DEVILS_ADVOCATE
    )
    logger.info("Groupthink detected: %s", "; ".join(indicators))
    return GroupthinkWarning(detected=True, indicators=indicators, recommendation=recommendation)
