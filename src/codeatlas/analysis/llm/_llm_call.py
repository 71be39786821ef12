"""litellm transport: chat and completion protocols behind circuit breakers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import litellm
from circuitbreaker import (  # pyright: ignore[reportUnknownVariableType]
    CircuitBreaker,
    CircuitBreakerError,
)
from litellm.exceptions import RateLimitError as LitellmRateLimitError

from codeatlas.analysis.llm.schemas import RawResponse
from codeatlas.config import Settings
from codeatlas.constants import (
    CB_LLM_FAILURE_THRESHOLD,
    CB_LLM_RECOVERY_TIMEOUT,
    LLM_STOP_SEQUENCES,
    LLM_TOP_P,
    RequestProtocol,
)
from codeatlas.ingestion.schemas import ChunkRequest
from codeatlas.prompts import (
    SYSTEM_PROMPT,
    build_chunk_prompt,
    build_completion_prompt,
)

logger = logging.getLogger(__name__)

# litellm stubs have partially unknown types; typed aliases
if TYPE_CHECKING:
    _acompletion: Callable[..., Coroutine[Any, Any, Any]]
    _atext_completion: Callable[..., Coroutine[Any, Any, Any]]
else:
    _acompletion = litellm.acompletion
    _atext_completion = litellm.atext_completion


@dataclass(frozen=True)
class LLMCallResult:
    """Structured return from a guarded call with token metadata."""

    content: str
    model: str
    protocol: RequestProtocol
    input_tokens: int
    output_tokens: int


def _is_non_rate_limit_error(
    thrown_type: type, thrown_value: BaseException
) -> bool:
    """Return True if NOT a rate limit error (should count as CB failure).

    The circuitbreaker library calls this with (thrown_type, thrown_value).
    Rate limiting is backpressure from a healthy service, not an outage.
    """
    return not issubclass(thrown_type, LitellmRateLimitError)


# Per-model circuit breaker registry: one model's outage must not
# short-circuit calls to another.
_breaker_registry: dict[str, CircuitBreaker] = {}  # pyright: ignore[reportUnknownVariableType]


def _get_breaker(model: str) -> CircuitBreaker:  # pyright: ignore[reportUnknownParameterType]
    """Get or create a circuit breaker for the given model."""
    if model not in _breaker_registry:
        _breaker_registry[model] = CircuitBreaker(  # pyright: ignore[reportUnknownMemberType]
            failure_threshold=CB_LLM_FAILURE_THRESHOLD,
            recovery_timeout=CB_LLM_RECOVERY_TIMEOUT,
            expected_exception=_is_non_rate_limit_error,
            name=f"llm_{model}",
        )
    return _breaker_registry[model]


def _request_kwargs(settings: Settings) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "model": settings.litellm_model,
        "timeout": settings.llm_chunk_timeout_seconds,
        "temperature": settings.llm_temperature,
        "max_tokens": settings.llm_max_output_tokens,
        "top_p": LLM_TOP_P,
        "stop": LLM_STOP_SEQUENCES,
    }
    if settings.api_base:
        kwargs["api_base"] = settings.api_base
    return kwargs


def _usage(response: Any) -> tuple[int, int]:
    usage: Any = getattr(response, "usage", None)
    return (
        int(getattr(usage, "prompt_tokens", 0) or 0),
        int(getattr(usage, "completion_tokens", 0) or 0),
    )


def _chat_content(response: Any) -> str:
    choices: Any = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message: Any = getattr(choices[0], "message", None)
    return str(getattr(message, "content", None) or "")


def _completion_text(response: Any) -> str:
    choices: Any = getattr(response, "choices", None) or []
    if not choices:
        return ""
    return str(getattr(choices[0], "text", None) or "")


async def guarded_chat_call(
    settings: Settings,
    messages: list[dict[str, str]],
    *,
    json_mode: bool = True,
) -> LLMCallResult:
    """Circuit-breaker-protected chat completion.

    Raises ``CircuitBreakerError`` without calling out when the model's
    breaker is open; any litellm error propagates to the caller.
    """
    model = settings.litellm_model
    breaker = _get_breaker(model)
    if breaker.opened:  # pyright: ignore[reportUnknownMemberType]
        raise CircuitBreakerError(breaker)  # pyright: ignore[reportUnknownArgumentType]
    with breaker:  # pyright: ignore[reportUnknownMemberType]
        kwargs = _request_kwargs(settings)
        kwargs["messages"] = messages
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        response: Any = await _acompletion(**kwargs)

    input_tokens, output_tokens = _usage(response)
    return LLMCallResult(
        content=_chat_content(response),
        model=model,
        protocol=RequestProtocol.CHAT,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )


async def guarded_completion_call(
    settings: Settings,
    prompt: str,
) -> LLMCallResult:
    """Circuit-breaker-protected plain text completion."""
    model = settings.litellm_model
    breaker = _get_breaker(model)
    if breaker.opened:  # pyright: ignore[reportUnknownMemberType]
        raise CircuitBreakerError(breaker)  # pyright: ignore[reportUnknownArgumentType]
    with breaker:  # pyright: ignore[reportUnknownMemberType]
        kwargs = _request_kwargs(settings)
        kwargs["prompt"] = prompt
        response: Any = await _atext_completion(**kwargs)

    input_tokens, output_tokens = _usage(response)
    return LLMCallResult(
        content=_completion_text(response),
        model=model,
        protocol=RequestProtocol.COMPLETION,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )


class LiteLLMTransport:
    """``InferenceTransport`` backed by litellm.

    CHAT sends the system prompt plus the chunk prompt as messages;
    COMPLETION sends one prompt string with a JSON-only hint appended.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()

    async def request(
        self, protocol: RequestProtocol, chunk: ChunkRequest
    ) -> RawResponse:
        if protocol is RequestProtocol.CHAT:
            result = await guarded_chat_call(
                self._settings,
                [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_chunk_prompt(chunk)},
                ],
            )
        else:
            result = await guarded_completion_call(
                self._settings, build_completion_prompt(chunk)
            )
        logger.debug(
            "event=inference_response chunk=%d protocol=%s chars=%d "
            "input_tokens=%d output_tokens=%d",
            chunk.index,
            protocol,
            len(result.content),
            result.input_tokens,
            result.output_tokens,
        )
        return RawResponse(text=result.content, protocol=protocol)
