"""Inference client interface and its LangChain implementation.

The pipeline only needs ``complete``: send a system and user prompt,
get text back, or an InferenceError carrying the HTTP status and error
code that drive retry classification.
"""

import asyncio
import logging
from typing import Protocol, runtime_checkable

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from booklens.config import DEFAULT_MAX_TOKENS, REQUEST_TIMEOUT
from booklens.errors import InferenceError
from booklens.utils.llm_factory import JSON_MODE_PROVIDERS, create_llm, resolve_provider

logger = logging.getLogger(__name__)


@runtime_checkable
class InferenceClient(Protocol):
    """Anything that can answer a prompt."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        expect_structured: bool,
    ) -> str: ...


def extract_status(error: BaseException) -> int | None:
    """Best-effort HTTP status from a provider SDK exception."""
    for attr in ("status_code", "status", "http_status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def extract_code(error: BaseException) -> str | None:
    """Best-effort transport/provider error code."""
    if isinstance(error, ConnectionResetError):
        return "ECONNRESET"
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "ETIMEDOUT"
    code = getattr(error, "code", None)
    if isinstance(code, str):
        return code
    return None


class LangChainInferenceClient:
    """InferenceClient backed by a LangChain chat model.

    One chat model is created per temperature and reused for the
    lifetime of the client.
    """

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        timeout: float = REQUEST_TIMEOUT,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        self.provider = resolve_provider(provider)
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._models: dict[float, BaseChatModel] = {}

    def _get_llm(self, temperature: float) -> BaseChatModel:
        if temperature not in self._models:
            self._models[temperature] = create_llm(
                provider=self.provider,
                model=self.model,
                temperature=temperature,
                timeout=self.timeout,
                max_tokens=self.max_tokens,
            )
        return self._models[temperature]

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        expect_structured: bool,
    ) -> str:
        llm = self._get_llm(temperature)
        if expect_structured and self.provider in JSON_MODE_PROVIDERS:
            llm = llm.bind(response_format={"type": "json_object"})

        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=user_prompt))

        try:
            response = await llm.ainvoke(messages)
        except (asyncio.CancelledError, InferenceError):
            raise
        except Exception as e:
            raise InferenceError(
                f"{type(e).__name__}: {e}",
                status=extract_status(e),
                code=extract_code(e) or type(e).__name__,
            ) from e

        content = response.content
        if isinstance(content, list):
            # Content blocks (Anthropic); keep the text parts
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return content


__all__ = ["InferenceClient", "LangChainInferenceClient", "extract_code", "extract_status"]
