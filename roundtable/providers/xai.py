"""xAI Grok agent using openai SDK (OpenAI-compatible API)."""

from config.config_loader import ModelConfig, PromptsConfig
from roundtable.providers.base import AgentError
from roundtable.providers.openai_provider import OpenAIAgent


class XAIAgent(OpenAIAgent):
    """xAI Grok agent via OpenAI-compatible API."""

    _label = "xAI"

    def __init__(self, config: ModelConfig, prompts: PromptsConfig | None = None) -> None:
        if not config.base_url:
            raise AgentError(config.name, "base_url is required for xAI agent")
        super().__init__(config, prompts)
