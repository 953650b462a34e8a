"""Streaming access to the upstream generation model.

``open`` pulls the first chunk before returning, so failures that happen while
the upstream request is being established (rate limiting, auth, bad model
name) are raised to the caller while the HTTP status can still be chosen.
Nothing here retries: every upstream call is billable and not idempotent.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable, List, Mapping, Optional, Protocol, Sequence

import openai
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from ..domain.errors import ConfigurationError, RateLimitedError, UpstreamFailure
from ..domain.generation_models import ModelConfig, Turn
from .model_router import ModelRouter, ProviderSelection


LOG = logging.getLogger("relay.llm")

ChatModelFactory = Callable[[ProviderSelection, ModelConfig, Mapping[str, str]], Any]


class ModelGateway(Protocol):
    async def open(self, turns: Sequence[Turn], config: ModelConfig) -> AsyncIterator[str]: ...


def to_lc_messages(turns: Sequence[Turn]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for turn in turns:
        if turn.role == "model":
            messages.append(AIMessage(content=turn.text))
        else:
            messages.append(HumanMessage(content=turn.text))
    return messages


def chunk_text(chunk: Any) -> str:
    """Extract the text of one streamed message chunk."""
    content = getattr(chunk, "content", chunk)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts: List[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return ""


def is_rate_limit(exc: BaseException) -> bool:
    """True when the upstream signalled throttling (HTTP 429 or equivalent)."""
    seen = 0
    current: Optional[BaseException] = exc
    while current is not None and seen < 5:
        if isinstance(current, openai.RateLimitError):
            return True
        for attr in ("status_code", "code", "status"):
            value = getattr(current, attr, None)
            if value == 429 or value in ("429", "RESOURCE_EXHAUSTED"):
                return True
        response = getattr(current, "response", None)
        if getattr(response, "status_code", None) == 429:
            return True
        message = str(current)
        if "429" in message or "RESOURCE_EXHAUSTED" in message or "rate limit" in message.lower():
            return True
        current = current.__cause__ or current.__context__
        seen += 1
    return False


def build_chat_model(selection: ProviderSelection, config: ModelConfig, env: Mapping[str, str]) -> Any:
    max_tokens = config.max_output_tokens
    if selection.max_output_tokens:
        max_tokens = min(max_tokens, selection.max_output_tokens)
    api_key = selection.api_key(env)
    if not api_key:
        raise ConfigurationError(f"Missing {selection.api_key_env}")

    if selection.name == "gemini":
        return ChatGoogleGenerativeAI(
            model=selection.model,
            google_api_key=api_key,
            temperature=config.temperature,
            top_k=config.top_k,
            top_p=config.top_p,
            max_output_tokens=max_tokens,
            max_retries=0,
        )

    # OpenAI-compatible endpoints have no top_k knob.
    return ChatOpenAI(
        api_key=api_key,
        base_url=selection.base_url(env),
        model=selection.model,
        temperature=config.temperature,
        top_p=config.top_p,
        max_tokens=max_tokens,
        max_retries=0,
    )


async def aclose_quietly(stream: Any) -> None:
    closer = getattr(stream, "aclose", None)
    if closer is None:
        return
    try:
        await closer()
    except Exception as exc:
        LOG.debug("llm_stream_close_failed", extra={"err": str(exc)})


async def _empty() -> AsyncIterator[str]:
    return
    yield  # pragma: no cover


async def _resume(first: Any, stream: Any) -> AsyncIterator[str]:
    try:
        text = chunk_text(first)
        if text:
            yield text
        async for chunk in stream:
            text = chunk_text(chunk)
            if text:
                yield text
    finally:
        await aclose_quietly(stream)


class LangChainModelGateway:
    def __init__(
        self,
        router: Optional[ModelRouter] = None,
        model_factory: ChatModelFactory = build_chat_model,
    ) -> None:
        self._router = router or ModelRouter()
        self._model_factory = model_factory

    async def open(self, turns: Sequence[Turn], config: ModelConfig) -> AsyncIterator[str]:
        try:
            selection = self._router.select_provider("document")
        except RuntimeError as exc:
            LOG.error("llm_not_configured", extra={"err": str(exc)})
            raise ConfigurationError(str(exc)) from exc

        LOG.info(
            "llm_stream_open",
            extra={
                "provider": selection.name,
                "model": selection.model,
                "turns": len(turns),
                "temperature": config.temperature,
                "max_output_tokens": config.max_output_tokens,
            },
        )
        stream: Any = None
        try:
            llm = self._model_factory(selection, config, self._router.env)
            stream = llm.astream(to_lc_messages(turns)).__aiter__()
            first = await stream.__anext__()
        except StopAsyncIteration:
            LOG.warning("llm_stream_empty", extra={"provider": selection.name})
            return _empty()
        except ConfigurationError:
            raise
        except Exception as exc:
            if stream is not None:
                await aclose_quietly(stream)
            if is_rate_limit(exc):
                LOG.warning("llm_rate_limited", extra={"provider": selection.name, "err": str(exc)})
                raise RateLimitedError(str(exc)) from exc
            LOG.exception("llm_stream_open_failed", extra={"provider": selection.name})
            raise UpstreamFailure(str(exc) or exc.__class__.__name__) from exc
        return _resume(first, stream)
