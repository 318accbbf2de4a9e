"""Anthropic Claude agent using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig, PromptsConfig
from roundtable.providers.base import AgentError, AgentTimeoutError, LLMAgent

logger = logging.getLogger(__name__)


class AnthropicAgent(LLMAgent):
    """Anthropic Claude agent via anthropic SDK."""

    def __init__(self, config: ModelConfig, prompts: PromptsConfig | None = None) -> None:
        super().__init__(config, prompts)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise AgentError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    async def _complete(self, prompt: str, system_prompt: str | None, timeout_sec: float) -> str:
        kwargs = {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            kwargs["system"] = system_prompt

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(self._client.messages.create(**kwargs), timeout=timeout_sec)
        except TimeoutError as exc:
            raise AgentTimeoutError(self._config.name, f"Request timed out after {timeout_sec:.0f}s") from exc
        except Exception as exc:
            raise AgentError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in response.content or [] if b.type == "text"]
        if not text_blocks:
            raise AgentError(self._config.name, "No text blocks in response")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic %s: %.2fs, %s tokens", self._config.model, latency, token_count)
        return "\n".join(text_blocks)
