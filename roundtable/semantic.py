"""LLM-assisted consensus analysis with lexical fallback.

An analysis agent picked from the pool reads every position and returns a
structured verdict. If no agent is available or the call fails, the lexical
analyzer answers instead and the reason is folded into its summary.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from roundtable.consensus import LexicalConsensusAnalyzer
from roundtable.models import ConsensusResult, PositionCluster, Response
from roundtable.parsing import parse_consensus_response
from roundtable.pool import AgentPool
from roundtable.providers.base import Agent

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = (
    "You analyze debate positions. Respond with valid JSON only, with no text "
    "before or after the object and no markdown code fences."
)

ANALYSIS_PROMPT = """You are analyzing debate positions from multiple AI agents. Judge meaning, not keyword overlap.

## Debate Topic
{topic}

## Agent Positions
{positions}

## Task
Return a JSON object with this exact structure:
{{
  "agreement_level": <number 0-1, where 1 = complete agreement>,
  "clusters": [{{"theme": "<name>", "agent_ids": ["<ids>"], "summary": "<position>"}}],
  "common_ground": ["<points all agents agree on>"],
  "disagreement_points": ["<key points of disagreement>"],
  "nuances": {{
    "partial_agreements": ["<agreement with caveats>"],
    "conditional_positions": ["<positions that depend on conditions>"],
    "uncertainties": ["<areas of expressed uncertainty>"]
  }},
  "groupthink_warning": {{"detected": <bool>, "indicators": ["<indicators>"], "recommendation": "<action>"}},
  "summary": "<2-3 sentence overall summary>",
  "reasoning": "<brief explanation of your analysis>"
}}

Guidance:
- "Developers need better tools" and "Software engineers require improved tooling" are the same position.
- "AI is dangerous" and "AI is not dangerous" are opposite positions.
- Set groupthink detected=true when agents converge with very high confidence without exploring alternatives,
  lean on social proof instead of evidence, or dismiss dissent without consideration.

Return ONLY the JSON object."""


@dataclass
class AnalysisDiagnostics:
    available: bool
    reason: str | None = None
    registered_providers: list[str] = field(default_factory=list)
    total_agents: int = 0
    active_agents: int = 0
    inactive_agents: list[tuple[str, str | None]] = field(default_factory=list)   # (agent_id, error)
    preferred_provider: str | None = None
    preferred_provider_available: bool | None = None


def format_positions(responses: Sequence[Response]) -> str:
    return "\n\n".join(
        f"### {r.agent_name} ({r.agent_id})\n"
        f"Position: {r.position}\n"
        f"Reasoning: {r.reasoning}\n"
        f"Confidence: {r.confidence:.0%}"
        for r in responses
    )


class SemanticConsensusAnalyzer:
    def __init__(
        self,
        pool: AgentPool,
        preferred_provider: str | None = None,
        lexical: LexicalConsensusAnalyzer | None = None,
    ) -> None:
        self._pool = pool
        self._preferred_provider = preferred_provider
        self._lexical = lexical or LexicalConsensusAnalyzer()

    def diagnostics(self) -> AnalysisDiagnostics:
        """Explain whether semantic analysis can run right now, without running it."""
        status = self._pool.health_status()
        active = [h for h in status if h.active]
        diag = AnalysisDiagnostics(
            available=bool(active),
            registered_providers=self._pool.registered_providers(),
            total_agents=len(status),
            active_agents=len(active),
            inactive_agents=[(h.agent_id, h.error) for h in status if not h.active],
            preferred_provider=self._preferred_provider,
        )
        if self._preferred_provider:
            diag.preferred_provider_available = self._pool.preferred_agent(self._preferred_provider) is not None

        if not status:
            diag.reason = "No agents registered (check API keys)"
        elif not active:
            errors = "; ".join(f"{agent_id}: {err or 'unknown error'}" for agent_id, err in diag.inactive_agents[:3])
            diag.reason = f"All {len(status)} agents failed health checks ({errors})"
        return diag

    async def analyze(self, responses: Sequence[Response], topic: str) -> ConsensusResult:
        """Never raises: any failure falls back to lexical analysis."""
        if not responses:
            return ConsensusResult(agreement_level=0.0, summary="No responses to analyze", analyzer_id="self")

        if len(responses) == 1:
            only = responses[0]
            return ConsensusResult(
                agreement_level=1.0,
                common_ground=[only.position],
                summary=f"Single response from {only.agent_name}",
                clusters=[PositionCluster(theme="Single Position", agent_ids=[only.agent_id], summary=only.position)],
                analyzer_id="self",
            )

        agent = self._pool.select_agent(self._preferred_provider)
        if agent is None:
            reason = self.diagnostics().reason or "No active agents"
            logger.warning("Semantic analysis unavailable: %s", reason)
            return self._fallback(responses, reason)

        try:
            return await self._analyze_with(agent, responses, topic)
        except Exception as exc:
            logger.warning("Semantic analysis via %s failed, using lexical analysis: %s", agent.agent_id(), exc)
            return self._fallback(responses, f"analysis agent {agent.agent_id()} failed: {exc}")

    async def _analyze_with(self, agent: Agent, responses: Sequence[Response], topic: str) -> ConsensusResult:
        prompt = ANALYSIS_PROMPT.format(topic=topic, positions=format_positions(responses))
        logger.debug("Semantic analysis of %d responses via %s", len(responses), agent.agent_id())
        raw = await agent.raw_complete(prompt, ANALYSIS_SYSTEM_PROMPT)
        logger.debug("Raw analysis output from %s (%d chars)", agent.agent_id(), len(raw))

        result = parse_consensus_response(raw, analyzer_id=agent.agent_id())
        if result.groupthink_warning and result.groupthink_warning.detected:
            logger.warning("Analysis agent reports groupthink: %s", "; ".join(result.groupthink_warning.indicators))
        return result

    def _fallback(self, responses: Sequence[Response], reason: str) -> ConsensusResult:
        result = self._lexical.analyze(responses)
        return replace(
            result,
            summary=f"{result.summary} (Semantic analysis unavailable: {reason})",
            reasoning=f"Lexical fallback: {reason}",
        )


async def analyze_consensus(
    responses: Sequence[Response],
    topic: str,
    pool: AgentPool | None = None,
    preferred_provider: str | None = None,
    lexical: LexicalConsensusAnalyzer | None = None,
) -> ConsensusResult:
    """Semantic analysis when a pool is given, lexical otherwise."""
    lexical = lexical or LexicalConsensusAnalyzer()
    if pool is None:
        return lexical.analyze(responses)
    return await SemanticConsensusAnalyzer(pool, preferred_provider, lexical).analyze(responses, topic)
