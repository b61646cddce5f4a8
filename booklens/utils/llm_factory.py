"""LLM Factory - Multi-provider chat model creation.

Creates LangChain chat models for Anthropic (default), OpenAI, LM Studio
and Mistral. Provider packages other than langchain-anthropic are
optional and imported on demand.
"""

import logging
import os
from typing import Literal

from langchain_core.language_models.chat_models import BaseChatModel

from booklens.config import DEFAULT_MAX_TOKENS, DEFAULT_MODELS, DEFAULT_PROVIDER

logger = logging.getLogger(__name__)

ProviderType = Literal["anthropic", "lmstudio", "mistral", "openai"]

# Providers whose API accepts response_format={"type": "json_object"}
JSON_MODE_PROVIDERS = frozenset({"openai", "lmstudio", "mistral"})


def resolve_provider(provider: str | None = None) -> str:
    """Determine provider (parameter > LLM_PROVIDER env var > anthropic).

    Raises:
        ValueError: If provider is invalid.
    """
    selected = provider or DEFAULT_PROVIDER
    if selected not in DEFAULT_MODELS:
        raise ValueError(
            f"Invalid provider: {selected}. "
            f"Must be one of: {', '.join(DEFAULT_MODELS.keys())}"
        )
    return selected


def create_llm(
    provider: ProviderType | None = None,
    model: str | None = None,
    temperature: float = 0.7,
    timeout: float | None = None,
    max_tokens: int = DEFAULT_MAX_TOKENS,
) -> BaseChatModel:
    """Create a chat model instance.

    Client-side retries are disabled; retrying is the executor's job.

    Args:
        provider: LLM provider. Defaults to LLM_PROVIDER env var or "anthropic".
        model: Model name. Defaults to {PROVIDER}_MODEL env var or provider default.
        temperature: Temperature for generation.
        timeout: Per-request timeout in seconds passed to the client.
        max_tokens: Output token limit.

    Returns:
        Configured chat model.

    Raises:
        ValueError: If provider is invalid.

    Examples:
        >>> llm = create_llm(temperature=0.6)
        >>> llm = create_llm(provider="openai", model="gpt-4o-mini")
    """
    selected_provider = resolve_provider(provider)
    selected_model = model or DEFAULT_MODELS[selected_provider]

    logger.info(f"Creating LLM: {selected_provider}/{selected_model} (temp={temperature})")

    if selected_provider == "mistral":
        from langchain_mistralai import ChatMistralAI

        return ChatMistralAI(
            model=selected_model,
            temperature=temperature,
            timeout=timeout,
            max_retries=0,
            max_tokens=max_tokens,
        )
    if selected_provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=selected_model,
            temperature=temperature,
            timeout=timeout,
            max_retries=0,
            max_tokens=max_tokens,
            base_url=os.getenv("OPENAI_BASE_URL") or None,
        )
    if selected_provider == "lmstudio":
        from langchain_openai import ChatOpenAI

        base_url = os.getenv("LMSTUDIO_BASE_URL") or "http://localhost:1234/v1"
        return ChatOpenAI(
            model=selected_model,
            temperature=temperature,
            timeout=timeout,
            max_retries=0,
            max_tokens=max_tokens,
            base_url=base_url,
            api_key="not-needed",  # Local server, no API key required
        )

    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(
        model=selected_model,
        temperature=temperature,
        timeout=timeout,
        max_retries=0,
        max_tokens=max_tokens,
    )


__all__ = ["JSON_MODE_PROVIDERS", "ProviderType", "create_llm", "resolve_provider"]
