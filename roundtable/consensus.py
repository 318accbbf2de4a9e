"""Lexical consensus analysis: deterministic clustering of positions, no external calls."""

import logging
import statistics
from collections.abc import Sequence

from roundtable.lexicon import DEFAULT_LEXICON, StanceLexicon
from roundtable.models import Cluster, ConsensusResult, Response, clamp_unit
from roundtable.text import keyword_map, position_similarity

logger = logging.getLogger(__name__)

CLUSTER_THRESHOLD = 0.35
POSITION_WEIGHT = 0.7
CONFIDENCE_WEIGHT = 0.3
# Largest possible population variance of values in [0, 1]
MAX_CONFIDENCE_VARIANCE = 0.25
HIGH_CONFIDENCE = 0.8
OUTLIER_DISTANCE = 0.3
MAX_THEMES = 5
PREVIEW_CHARS = 100

FALLBACK_COMMON_GROUND = "Multiple perspectives on the topic"


def _truncate(text: str, limit: int = PREVIEW_CHARS) -> str:
    return text if len(text) <= limit else text[:limit].rstrip() + "..."


def _pct(value: float) -> str:
    return f"{value * 100:.0f}%"


def agreement_band(level: float) -> str:
    if level >= 0.8:
        return "Strong consensus"
    if level >= 0.6:
        return "Moderate consensus"
    if level >= 0.4:
        return "Partial agreement"
    return "Diverse perspectives"


def cluster_responses(
    responses: Sequence[Response],
    lexicon: StanceLexicon = DEFAULT_LEXICON,
    threshold: float = CLUSTER_THRESHOLD,
) -> list[Cluster]:
    """Greedy single-link clustering of responses by position similarity.

    Each response joins every existing cluster holding a member at or above
    ``threshold``; clusters it links are merged. The first-seen response seeds
    each new cluster and members keep input order.
    """
    groups: list[list[int]] = []
    for i, response in enumerate(responses):
        linked = [
            group for group in groups
            if any(
                position_similarity(responses[j].position, response.position, lexicon) >= threshold
                for j in group
            )
        ]
        if not linked:
            groups.append([i])
            continue
        target = linked[0]
        target.append(i)
        for other in linked[1:]:
            target.extend(other)
        target.sort()
        merged = linked[1:]
        groups = [g for g in groups if not any(g is m for m in merged)]

    return [Cluster(members=tuple(responses[j] for j in group)) for group in groups]


class LexicalConsensusAnalyzer:
    """Agreement analysis from position clustering and confidence spread."""

    def __init__(
        self,
        lexicon: StanceLexicon = DEFAULT_LEXICON,
        threshold: float = CLUSTER_THRESHOLD,
    ) -> None:
        self._lexicon = lexicon
        self._threshold = threshold

    @property
    def lexicon(self) -> StanceLexicon:
        return self._lexicon

    def analyze(self, responses: Sequence[Response]) -> ConsensusResult:
        if not responses:
            return ConsensusResult(
                agreement_level=0.0,
                summary="No responses to analyze",
                analyzer_id="lexical",
            )

        if len(responses) == 1:
            only = responses[0]
            return ConsensusResult(
                agreement_level=1.0,
                common_ground=[only.position],
                summary=f"Single response from {only.agent_name}",
                analyzer_id="lexical",
            )

        clusters = cluster_responses(responses, self._lexicon, self._threshold)
        level = self.agreement_level(responses, clusters)
        common_ground = self._common_ground(responses, clusters)
        disagreements = self._disagreement_points(responses, clusters)
        summary = self._summary(responses, clusters, level)

        logger.debug(
            "Lexical analysis: %d responses, %d clusters, agreement %.3f",
            len(responses), len(clusters), level,
        )

        return ConsensusResult(
            agreement_level=level,
            common_ground=common_ground,
            disagreement_points=disagreements,
            summary=summary,
            analyzer_id="lexical",
        )

    @staticmethod
    def agreement_level(responses: Sequence[Response], clusters: Sequence[Cluster]) -> float:
        """0.7 x position term + 0.3 x (1 - normalized confidence variance).

        The position term is 1.0 when everything sits in one cluster and 0.0
        when every response is its own cluster.
        """
        total = len(responses)
        largest = max(c.size for c in clusters)
        position_term = 1.0 if total <= 1 else (largest - 1) / (total - 1)

        variance = statistics.pvariance([r.confidence for r in responses])
        confidence_term = 1.0 - min(1.0, variance / MAX_CONFIDENCE_VARIANCE)

        return clamp_unit(POSITION_WEIGHT * position_term + CONFIDENCE_WEIGHT * confidence_term)

    def _common_ground(self, responses: Sequence[Response], clusters: Sequence[Cluster]) -> list[str]:
        total = len(responses)
        largest = max(clusters, key=lambda c: c.size)
        points: list[str] = []
        majority_rep: Response | None = None

        if largest.size * 2 > total:
            maps = [keyword_map(r.position, self._lexicon) for r in largest.members]
            shared = set(maps[0]).intersection(*maps[1:])
            majority_rep = largest.representative
            rep_map = keyword_map(majority_rep.position, self._lexicon)
            themes = [rep_map[s] for s in rep_map if s in shared][:MAX_THEMES]
            if themes:
                points.append(f"Shared themes: {', '.join(themes)}")
            points.append(f"Majority position ({largest.size}/{total} agents): {majority_rep.position}")
        else:
            counts: dict[str, int] = {}
            surface: dict[str, str] = {}
            for response in responses:
                for s, word in keyword_map(response.position, self._lexicon).items():
                    counts[s] = counts.get(s, 0) + 1
                    surface.setdefault(s, word)
            # dicts keep first-appearance order, and sorted() is stable
            recurring = sorted((s for s, c in counts.items() if c >= 2), key=lambda s: -counts[s])
            if recurring:
                themes = [surface[s] for s in recurring[:MAX_THEMES]]
                points.append(f"Recurring themes: {', '.join(themes)}")
            else:
                points.append(FALLBACK_COMMON_GROUND)

        confident = [
            r for r in responses
            if r.confidence >= HIGH_CONFIDENCE and r is not majority_rep
        ]
        for r in confident[:2]:
            points.append(f"{r.agent_name} ({_pct(r.confidence)}): {r.position}")
        return points

    @staticmethod
    def _disagreement_points(responses: Sequence[Response], clusters: Sequence[Cluster]) -> list[str]:
        if len(clusters) > 1:
            points = []
            for cluster in clusters:
                text = cluster.representative_text.strip()
                if not text:
                    continue
                names = ", ".join(r.agent_name for r in cluster.members)
                points.append(
                    f"Position held by {names} (avg confidence {_pct(cluster.average_confidence)}): "
                    f"{_truncate(text)}"
                )
            return points

        mean = statistics.fmean(r.confidence for r in responses)
        outliers = [r for r in responses if abs(r.confidence - mean) > OUTLIER_DISTANCE]
        if not outliers:
            return []
        listed = ", ".join(f"{r.agent_name} ({_pct(r.confidence)})" for r in outliers)
        return [f"Divergent confidence within the shared position: {listed}"]

    @staticmethod
    def _summary(responses: Sequence[Response], clusters: Sequence[Cluster], level: float) -> str:
        names = ", ".join(r.agent_name for r in responses)
        plural = "cluster" if len(clusters) == 1 else "clusters"
        return (
            f"Analysis of {len(responses)} responses from {names}. "
            f"{agreement_band(level)} ({_pct(level)} agreement) across "
            f"{len(clusters)} position {plural}."
        )
