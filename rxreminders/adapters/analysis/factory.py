"""
Factory: build the analysis provider named by AnalysisConfig.provider.

Adding a vendor takes a BaseLLMClient subclass in llm_clients.py and one
line in the registry below; the workflow and CLI are unchanged.
"""

import logging
from typing import Callable, Optional

from rxreminders.adapters.analysis.llm_clients import BaseLLMClient
from rxreminders.adapters.analysis.llm_provider import LLMAnalysisProvider
from rxreminders.infrastructure.config_manager import AnalysisConfig

logger = logging.getLogger(__name__)


def _openai_client(config: AnalysisConfig) -> BaseLLMClient:
    from rxreminders.adapters.analysis.llm_clients import OpenAIChatClient

    return OpenAIChatClient(
        api_key=config.api_key.get_secret_value(),
        base_url=config.resolved_base_url(),
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout_seconds,
    )


def _anthropic_client(config: AnalysisConfig) -> BaseLLMClient:
    from rxreminders.adapters.analysis.llm_clients import AnthropicChatClient

    return AnthropicChatClient(
        api_key=config.api_key.get_secret_value(),
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout_seconds,
    )


def _build_registry() -> dict[str, Callable[[AnalysisConfig], BaseLLMClient]]:
    return {
        "openai":    _openai_client,
        "groq":      _openai_client,
        "anthropic": _anthropic_client,
    }


def get_analysis_provider(config: AnalysisConfig) -> Optional[LLMAnalysisProvider]:
    """
    Build the provider for config.provider.

    Returns None when no API key is configured, so the orchestrator runs
    advanced requests with basic analysis.

    Raises:
        ValueError: Unknown provider
    """
    registry = _build_registry()
    build_client = registry.get(config.provider)

    if build_client is None:
        raise ValueError(
            f"Unknown analysis provider: {config.provider!r}. "
            f"Known providers: {list(registry.keys())}"
        )

    if not config.is_configured:
        logger.info(f"No API key for analysis provider {config.provider}; advanced analysis disabled")
        return None

    return LLMAnalysisProvider(
        client=build_client(config),
        models=config.resolved_models(),
        name=config.provider,
    )
