"""Dataclasses for the roundtable debate pipeline.

Responses and contexts are frozen values: hooks and validators build new
instances with ``dataclasses.replace`` instead of mutating them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

STANCES = ("YES", "NO", "NEUTRAL")

ExitReason = Literal["consensus", "convergence", "confidence", "max_rounds"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp_unit(value: float) -> float:
    """Clamp a score into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


@dataclass(frozen=True)
class Citation:
    title: str
    url: str
    snippet: str | None = None


@dataclass(frozen=True)
class ToolCallRecord:
    tool_name: str
    input: Any
    output: Any
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class Response:
    agent_id: str
    agent_name: str
    position: str
    reasoning: str
    confidence: float
    stance: str | None = None          # "YES", "NO" or "NEUTRAL"
    citations: tuple[Citation, ...] = ()
    tool_calls: tuple[ToolCallRecord, ...] = ()
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "confidence", clamp_unit(self.confidence))
        object.__setattr__(self, "citations", tuple(self.citations))
        object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        if self.stance is not None:
            stance = str(self.stance).strip().upper()
            if stance not in STANCES:
                raise ValueError(f"Unknown stance: {self.stance!r}")
            object.__setattr__(self, "stance", stance)


@dataclass(frozen=True)
class RoundContext:
    session_id: str
    topic: str
    mode: str
    current_round: int
    total_rounds: int
    previous_responses: tuple[Response, ...] = ()   # round-then-agent order
    focus_question: str | None = None
    mode_prompt: str | None = None
    role: str | None = None

    def __post_init__(self) -> None:
        if self.current_round > self.total_rounds:
            raise ValueError(
                f"current_round ({self.current_round}) exceeds total_rounds ({self.total_rounds})"
            )
        object.__setattr__(self, "previous_responses", tuple(self.previous_responses))


@dataclass(frozen=True)
class Cluster:
    """Responses judged to hold equivalent positions."""

    members: tuple[Response, ...]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def representative(self) -> Response:
        # max() keeps the first of equal maxima, so ties go to the first-seen member
        return max(self.members, key=lambda r: r.confidence)

    @property
    def representative_text(self) -> str:
        return self.representative.position

    @property
    def average_confidence(self) -> float:
        return sum(r.confidence for r in self.members) / len(self.members)


@dataclass(frozen=True)
class PositionCluster:
    """A position cluster as reported by the semantic analyzer."""

    theme: str
    agent_ids: list[str]
    summary: str


@dataclass(frozen=True)
class Nuances:
    partial_agreements: list[str] = field(default_factory=list)
    conditional_positions: list[str] = field(default_factory=list)
    uncertainties: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GroupthinkWarning:
    detected: bool
    indicators: list[str] = field(default_factory=list)
    recommendation: str = ""


@dataclass(frozen=True)
class ConsensusResult:
    agreement_level: float
    common_ground: list[str] = field(default_factory=list)
    disagreement_points: list[str] = field(default_factory=list)
    summary: str = ""
    groupthink_warning: GroupthinkWarning | None = None
    clusters: list[PositionCluster] | None = None
    nuances: Nuances | None = None
    reasoning: str | None = None
    analyzer_id: str | None = None     # "lexical", "self" or the analysis agent's id


@dataclass(frozen=True)
class ExitCriteria:
    max_rounds: int
    consensus_threshold: float = 0.9
    convergence_rounds: int = 2
    confidence_threshold: float = 0.85


@dataclass(frozen=True)
class ExitResult:
    should_exit: bool
    reason: ExitReason | None
    details: str


@dataclass
class RoundResult:
    round_number: int
    responses: list[Response] = field(default_factory=list)
    consensus: ConsensusResult | None = None
    groupthink: GroupthinkWarning | None = None
    key_points: dict[str, list[str]] = field(default_factory=dict)
    exit: ExitResult | None = None
