"""Chat-completion client abstraction for fragment queries."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

import openai

from grepowski.config import ConfigError, RunConfig

log = logging.getLogger(__name__)

UNAUTHENTICATED_KEY = "unused"


class RequestError(RuntimeError):
    """Raised when a single chat-completion call fails.

    ``kind`` is one of: connection, timeout, status, malformed, empty.
    """

    def __init__(self, message: str, *, kind: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


@dataclass(frozen=True)
class LLMResponse:
    text: str
    input_tokens: int
    output_tokens: int


def _completion_text(resp) -> str:
    try:
        content = resp.choices[0].message.content
    except (AttributeError, IndexError, KeyError, TypeError) as exc:
        raise RequestError(
            "Malformed response: expected choices[0].message.content.",
            kind="malformed",
        ) from exc
    if not isinstance(content, str):
        raise RequestError(
            f"Malformed response: completion content is {type(content).__name__}, not text.",
            kind="malformed",
        )
    if not content.strip():
        raise RequestError("Empty completion returned by the model.", kind="empty")
    return content


def _usage_tokens(resp) -> tuple[int, int]:
    usage = getattr(resp, "usage", None)
    if not usage:
        return 0, 0
    return getattr(usage, "prompt_tokens", 0) or 0, getattr(usage, "completion_tokens", 0) or 0


class LLMClient:
    """Abstract base class for chat-completion providers."""

    provider: str = "base"

    def generate(
        self,
        prompt: str,
        *,
        system: str = "",
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        raise NotImplementedError


class ChatCompletionClient(LLMClient):
    """OpenAI-compatible endpoint (llama.cpp server, vLLM, Ollama, OpenAI...)."""

    provider = "openai_compatible"

    def __init__(self, config: RunConfig, client=None, http_client=None) -> None:
        self._config = config
        if client is None:
            from openai import OpenAI

            # The SDK insists on a key; without a token the header is omitted per request.
            try:
                client = OpenAI(
                    base_url=config.base_url,
                    api_key=config.token or UNAUTHENTICATED_KEY,
                    timeout=config.timeout_s,
                    max_retries=0,
                    http_client=http_client,
                )
            except openai.OpenAIError as exc:
                raise ConfigError(f"Cannot set up chat-completion client: {exc}") from exc
        self._client = client

    def _create(self, kwargs: dict):
        try:
            return self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as exc:
            raise RequestError(
                f"Request timed out after {self._config.timeout_s:g}s.", kind="timeout"
            ) from exc
        except openai.APIConnectionError as exc:
            raise RequestError(f"Connection failed: {exc}", kind="connection") from exc
        except openai.APIStatusError as exc:
            raise RequestError(
                f"Endpoint returned HTTP {exc.status_code}: {exc.message}",
                kind="status",
                status_code=exc.status_code,
            ) from exc
        except openai.APIResponseValidationError as exc:
            raise RequestError(f"Malformed response: {exc.message}", kind="malformed") from exc
        except ValueError as exc:
            # Undecodable JSON bodies surface as JSONDecodeError.
            raise RequestError(f"Malformed response: {exc}", kind="malformed") from exc

    def generate(
        self,
        prompt: str,
        *,
        system: str = "",
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: dict = {
            "model": model or self._config.model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self._config.temperature,
            "timeout": self._config.timeout_s,
        }
        if not self._config.token:
            kwargs["extra_headers"] = {"Authorization": openai.Omit()}
        limit = max_tokens if max_tokens is not None else self._config.max_tokens
        if limit is not None:
            kwargs["max_tokens"] = limit

        resp = self._create(kwargs)
        input_tokens, output_tokens = _usage_tokens(resp)
        return LLMResponse(
            text=_completion_text(resp),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


class MockOfflineClient(LLMClient):
    """Deterministic answers without network access, for demos and tests."""

    provider = "mock"

    def generate(
        self,
        prompt: str,
        *,
        system: str = "",
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        del model, temperature, max_tokens
        digest = hashlib.sha256(f"{system}\n{prompt}".encode("utf-8")).digest()
        value = int.from_bytes(digest[:4], "big") / 0xFFFFFFFF
        return LLMResponse(text=f"{value:.3f}", input_tokens=0, output_tokens=0)


def get_llm_client(config: RunConfig) -> LLMClient:
    if config.offline:
        log.info("Offline mode: answers come from the deterministic mock client.")
        return MockOfflineClient()
    log.debug("Using chat-completion endpoint %s (model=%s).", config.url, config.model)
    return ChatCompletionClient(config)
