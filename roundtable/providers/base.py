"""Agent boundary: the abstract participant and the LLM-backed base for SDK adapters."""

import logging
from abc import ABC, abstractmethod

from config.config_loader import ModelConfig, PromptsConfig
from roundtable.models import STANCES, Citation, Response, RoundContext
from roundtable.parsing import extract_number, load_json_object

logger = logging.getLogger(__name__)

# Timed-out calls are retried once with this multiple of the configured timeout
_RETRY_TIMEOUT_FACTOR = 1.5
_FALLBACK_CONFIDENCE = 0.5
_POSITION_PREVIEW = 300

DEFAULT_SYSTEM_PROMPT = (
    "You are a participant in a structured multi-agent debate. "
    "Reply with a single JSON object and nothing else."
)

DEFAULT_RESPONSE_TEMPLATE = """Debate topic: {topic}
Mode: {mode} | Round {round} of {total_rounds}
{role}{focus}
{mode_instructions}

Previous responses:
{previous_responses}

Reply with JSON: {{"position": "<one-sentence position>", "reasoning": "<your argument>",
"confidence": <0-1>, "stance": "YES" | "NO" | "NEUTRAL" | null}}"""


class AgentError(Exception):
    """Raised when an agent call fails."""

    def __init__(self, agent_id: str, message: str) -> None:
        self.agent_id = agent_id
        super().__init__(f"[{agent_id}] {message}")


class AgentTimeoutError(AgentError):
    """Raised when an agent call exceeds its timeout."""


class Agent(ABC):
    """A debate participant."""

    @abstractmethod
    def agent_id(self) -> str:
        """Return the unique agent id (e.g. 'claude')."""
        ...

    @abstractmethod
    def name(self) -> str:
        """Return the display name used in transcripts and summaries."""
        ...

    @abstractmethod
    def provider(self) -> str:
        """Return the provider family (e.g. 'anthropic', 'openai')."""
        ...

    @abstractmethod
    async def respond(self, context: RoundContext) -> Response:
        """Produce this agent's response for a round.

        Raises:
            AgentError: On provider failure, timeout or unusable output.
        """
        ...

    @abstractmethod
    async def raw_complete(self, prompt: str, system_prompt: str | None = None) -> str:
        """Return the model's raw text for ``prompt``; the text is untrusted."""
        ...


def format_previous_responses(responses: tuple[Response, ...]) -> str:
    if not responses:
        return "(none yet)"
    return "\n\n".join(
        f"--- {r.agent_name} (confidence {r.confidence:.0%}) ---\n"
        f"Position: {r.position}\nReasoning: {r.reasoning}"
        for r in responses
    )


def build_response_prompt(context: RoundContext, template: str = DEFAULT_RESPONSE_TEMPLATE) -> str:
    return template.format(
        topic=context.topic,
        mode=context.mode,
        round=context.current_round,
        total_rounds=context.total_rounds,
        role=f"Your role: {context.role}\n" if context.role else "",
        focus=f"Focus question: {context.focus_question}\n" if context.focus_question else "",
        mode_instructions=context.mode_prompt or "",
        previous_responses=format_previous_responses(context.previous_responses),
    )


def _citations(value: object) -> list[Citation]:
    if not isinstance(value, list):
        return []
    return [
        Citation(title=str(c.get("title", "")), url=str(c["url"]), snippet=c.get("snippet"))
        for c in value
        if isinstance(c, dict) and c.get("url")
    ]


def parse_agent_response(text: str, agent_id: str, agent_name: str) -> Response:
    """Turn model output into a Response.

    Output that is not a JSON object with a position still yields a response:
    the first non-empty line becomes the position, the whole text the
    reasoning, with neutral confidence.
    """
    data = load_json_object(text)
    if data and isinstance(data.get("position"), str) and data["position"].strip():
        confidence = extract_number(data.get("confidence"))
        if confidence is None:
            confidence = _FALLBACK_CONFIDENCE
        elif confidence > 1.0:
            confidence /= 100.0     # "85" means 85%
        stance = data.get("stance")
        stance = stance.strip().upper() if isinstance(stance, str) else None
        return Response(
            agent_id=agent_id,
            agent_name=agent_name,
            position=data["position"].strip(),
            reasoning=str(data.get("reasoning") or "").strip() or text.strip(),
            confidence=confidence,
            stance=stance if stance in STANCES else None,
            citations=tuple(_citations(data.get("citations"))),
        )

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        raise AgentError(agent_id, "Empty response content")
    logger.warning("Agent %s returned unstructured output, using first line as position", agent_id)
    return Response(
        agent_id=agent_id,
        agent_name=agent_name,
        position=lines[0][:_POSITION_PREVIEW],
        reasoning=text.strip(),
        confidence=_FALLBACK_CONFIDENCE,
    )


class LLMAgent(Agent):
    """Agent backed by a chat model; subclasses implement ``_complete`` for one SDK."""

    def __init__(self, config: ModelConfig, prompts: PromptsConfig | None = None) -> None:
        self._config = config
        self._prompts = prompts

    def agent_id(self) -> str:
        return self._config.name

    def name(self) -> str:
        return self._config.display_name or self._config.name

    def provider(self) -> str:
        return self._config.sdk

    def model_string(self) -> str:
        return self._config.model

    @abstractmethod
    async def _complete(self, prompt: str, system_prompt: str | None, timeout_sec: float) -> str:
        """One SDK call.

        Raises:
            AgentTimeoutError: When ``timeout_sec`` elapses.
            AgentError: On any other failure or empty output.
        """
        ...

    async def _complete_with_retry(self, prompt: str, system_prompt: str | None) -> str:
        timeout = float(self._config.timeout_sec)
        try:
            return await self._complete(prompt, system_prompt, timeout)
        except AgentTimeoutError:
            retry_timeout = timeout * _RETRY_TIMEOUT_FACTOR
            logger.warning(
                "Agent %s timed out, retrying with %.0fs (1.5x)", self.agent_id(), retry_timeout,
            )
            return await self._complete(prompt, system_prompt, retry_timeout)

    async def raw_complete(self, prompt: str, system_prompt: str | None = None) -> str:
        return await self._complete_with_retry(prompt, system_prompt)

    async def respond(self, context: RoundContext) -> Response:
        template = self._prompts.response if self._prompts else DEFAULT_RESPONSE_TEMPLATE
        system = self._prompts.system if self._prompts else DEFAULT_SYSTEM_PROMPT
        prompt = build_response_prompt(context, template)
        text = await self._complete_with_retry(prompt, system)
        return parse_agent_response(text, self.agent_id(), self.name())
