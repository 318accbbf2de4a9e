"""Condense each response's reasoning into a handful of key points.

Rule-based extraction always works offline. When an agent pool is given, an
agent is asked for the points instead and any response it fails on falls
back to the rules.
"""

import asyncio
import logging
import re
from collections.abc import Sequence

from roundtable.models import Response
from roundtable.parsing import load_json_object
from roundtable.pool import AgentPool
from roundtable.providers.base import Agent

logger = logging.getLogger(__name__)

MAX_KEY_POINTS = 4
MIN_POINT_CHARS = 10
MIN_SENTENCE_CHARS = 20
TRUNCATE_CHARS = 200

_NUMBERED = re.compile(r"(?:^|\n)\d+[.):]\s*([^\n]+)")
# Split after sentence punctuation when the next sentence starts with a capital or Hangul
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+(?=[A-Z가-힣])")

EXTRACTION_SYSTEM_PROMPT = (
    "You extract key points from text. Respond with valid JSON only, "
    "with no text before or after the object and no code fences."
)

EXTRACTION_PROMPT = """Extract the 2-4 most important points from this debate response.

Agent: {agent_name}
Position: {position}
Reasoning:
{reasoning}

Each point must be a complete, self-contained statement of one or two sentences.
Return: {{"key_points": ["<point 1>", "<point 2>"]}}"""


def extract_with_rules(reasoning: str, max_points: int = MAX_KEY_POINTS) -> list[str]:
    """Top-level numbered points, else leading sentences, else the truncated text."""
    points = [
        m.strip() for m in _NUMBERED.findall(reasoning)[:max_points]
        if len(m.strip()) > MIN_POINT_CHARS
    ]
    if points:
        return points

    sentences = [s.strip() for s in _SENTENCE_BREAK.split(reasoning) if len(s.strip()) > MIN_SENTENCE_CHARS]
    points = sentences[:max_points]
    if points:
        return points

    return [reasoning.strip()[:TRUNCATE_CHARS] or "No key points identified"]


class KeyPointsExtractor:
    def __init__(
        self,
        pool: AgentPool | None = None,
        preferred_provider: str | None = None,
        max_points: int = MAX_KEY_POINTS,
    ) -> None:
        self._pool = pool
        self._preferred_provider = preferred_provider
        self._max_points = max_points

    async def extract_batch(self, responses: Sequence[Response]) -> dict[str, list[str]]:
        """Map agent id -> key points for every response."""
        if not responses:
            return {}

        agent = self._pool.select_agent(self._preferred_provider) if self._pool else None
        if agent is None:
            return {r.agent_id: extract_with_rules(r.reasoning, self._max_points) for r in responses}

        results = await asyncio.gather(*(self._extract_one(agent, r) for r in responses))
        return {r.agent_id: points for r, points in zip(responses, results)}

    async def _extract_one(self, agent: Agent, response: Response) -> list[str]:
        prompt = EXTRACTION_PROMPT.format(
            agent_name=response.agent_name,
            position=response.position,
            reasoning=response.reasoning,
        )
        try:
            raw = await agent.raw_complete(prompt, EXTRACTION_SYSTEM_PROMPT)
        except Exception as exc:
            logger.warning("Key point extraction via %s failed for %s: %s", agent.agent_id(), response.agent_id, exc)
            return extract_with_rules(response.reasoning, self._max_points)

        data = load_json_object(raw) or {}
        value = data.get("key_points", data.get("keyPoints"))
        points = [str(p).strip() for p in value[:self._max_points]] if isinstance(value, list) else []
        points = [p for p in points if p]
        if not points:
            logger.warning("No key points in output from %s for %s, using rules", agent.agent_id(), response.agent_id)
            return extract_with_rules(response.reasoning, self._max_points)
        return points
