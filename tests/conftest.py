"""Shared pytest fixtures."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AnalysisConfig,
    AppConfig,
    DefaultsConfig,
    ExitCriteriaConfig,
    ModelConfig,
    PromptsConfig,
)
from roundtable.models import Response, RoundContext
from roundtable.providers.base import Agent, AgentError


def make_response(
    agent_id: str = "a",
    position: str = "Use YAML for configuration files",
    confidence: float = 0.7,
    stance: str | None = None,
    reasoning: str = "It is readable and supports comments.",
    agent_name: str | None = None,
) -> Response:
    return Response(
        agent_id=agent_id,
        agent_name=agent_name or agent_id.upper(),
        position=position,
        reasoning=reasoning,
        confidence=confidence,
        stance=stance,
    )


class StubAgent(Agent):
    """Test double Agent.

    ``respond`` echoes a fixed position after an optional delay, or raises
    ``error``. Every context it receives is recorded in ``contexts``.
    ``raw_complete`` is an AsyncMock returning ``raw_text``.
    """

    def __init__(
        self,
        agent_id: str = "stub",
        position: str = "Stub position",
        confidence: float = 0.7,
        stance: str | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
        provider: str = "stub",
        raw_text: str = "OK",
    ) -> None:
        self._agent_id = agent_id
        self._position = position
        self._confidence = confidence
        self._stance = stance
        self._delay = delay
        self._error = error
        self._provider = provider
        self.contexts: list[RoundContext] = []
        self.raw_complete = AsyncMock(return_value=raw_text)  # type: ignore[assignment]

    def agent_id(self) -> str:
        return self._agent_id

    def name(self) -> str:
        return self._agent_id.title()

    def provider(self) -> str:
        return self._provider

    async def respond(self, context: RoundContext) -> Response:
        self.contexts.append(context)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return Response(
            agent_id=self._agent_id,
            agent_name=self.name(),
            position=self._position,
            reasoning=f"Reasoning from {self._agent_id}",
            confidence=self._confidence,
            stance=self._stance,
        )

    async def raw_complete(self, prompt: str, system_prompt: str | None = None) -> str:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return "OK"


def failing_agent(agent_id: str, delay: float = 0.0) -> StubAgent:
    return StubAgent(agent_id, delay=delay, error=AgentError(agent_id, "boom"))


@pytest.fixture
def base_context() -> RoundContext:
    return RoundContext(
        session_id="s1",
        topic="Should we use YAML or JSON for config?",
        mode="collaborative",
        current_round=1,
        total_rounds=3,
    )


@pytest.fixture
def three_agents() -> list[StubAgent]:
    return [
        StubAgent("alpha", "YAML is better for human-edited config files"),
        StubAgent("beta", "JSON is better for machine generated data"),
        StubAgent("gamma", "TOML offers a middle ground for config"),
    ]


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="openai",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        display_name="Test Model",
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        system="You debate. Reply with JSON.",
        response="Topic: {topic} ({mode}, round {round}/{total_rounds})\n{role}{focus}{mode_instructions}\n"
                 "Previous:\n{previous_responses}",
    )


@pytest.fixture
def sample_app_config(sample_prompts_config: PromptsConfig) -> AppConfig:
    models = {
        name: ModelConfig(
            name=name,
            sdk=sdk,
            model=f"{name}-model",
            api_key_env=f"{name.upper()}_KEY",
            timeout_sec=60,
            max_tokens=4096,
        )
        for name, sdk in [("claude", "anthropic"), ("openai", "openai"), ("gemini", "gemini")]
    }
    return AppConfig(
        defaults=DefaultsConfig(rounds=2, mode="collaborative", participants=["claude", "openai", "gemini"]),
        models=models,
        prompts=sample_prompts_config,
        exit_criteria=ExitCriteriaConfig(),
        analysis=AnalysisConfig(semantic=False),
        available_providers={"claude", "openai", "gemini"},
    )


@pytest.fixture
def lexicon_file(tmp_path: Path) -> Path:
    path = tmp_path / "lexicon.yaml"
    path.write_text(
        "stance_terms: [peligrosa, Schädlich]\nnegators: [jamais]\nnegation_window: 4\n",
        encoding="utf-8",
    )
    return path
