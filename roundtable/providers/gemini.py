"""Gemini agent using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig, PromptsConfig
from roundtable.providers.base import AgentError, AgentTimeoutError, LLMAgent

logger = logging.getLogger(__name__)


class GeminiAgent(LLMAgent):
    """Google Gemini agent via google-genai SDK."""

    def __init__(self, config: ModelConfig, prompts: PromptsConfig | None = None) -> None:
        super().__init__(config, prompts)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise AgentError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    async def _complete(self, prompt: str, system_prompt: str | None, timeout_sec: float) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=prompt,
                    config=genai_types.GenerateContentConfig(
                        max_output_tokens=self._config.max_tokens,
                        system_instruction=system_prompt,
                    ),
                ),
                timeout=timeout_sec,
            )
        except TimeoutError as exc:
            raise AgentTimeoutError(self._config.name, f"Request timed out after {timeout_sec:.0f}s") from exc
        except Exception as exc:
            raise AgentError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise AgentError(self._config.name, "Empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini %s: %.2fs, %s tokens", self._config.model, latency, token_count)
        return response.text
