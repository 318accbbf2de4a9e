"""OpenAI agent using openai SDK with native async."""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig, PromptsConfig
from roundtable.providers.base import AgentError, AgentTimeoutError, LLMAgent

logger = logging.getLogger(__name__)


def chat_messages(prompt: str, system_prompt: str | None) -> list[dict[str, str]]:
    messages = [{"role": "system", "content": system_prompt}] if system_prompt else []
    messages.append({"role": "user", "content": prompt})
    return messages


class OpenAIAgent(LLMAgent):
    """OpenAI agent via openai SDK. Also serves OpenAI-compatible endpoints through ``base_url``."""

    _label = "OpenAI"

    def __init__(self, config: ModelConfig, prompts: PromptsConfig | None = None) -> None:
        super().__init__(config, prompts)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise AgentError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    async def _complete(self, prompt: str, system_prompt: str | None, timeout_sec: float) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=chat_messages(prompt, system_prompt),
                    max_tokens=self._config.max_tokens,
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise AgentTimeoutError(self._config.name, f"Request timed out after {timeout_sec:.0f}s") from exc
        except Exception as exc:
            raise AgentError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise AgentError(self._config.name, "Empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("%s %s: %.2fs, %s tokens", self._label, self._config.model, latency, token_count)
        return choice.message.content
