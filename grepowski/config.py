"""Centralized configuration for grepowski runs."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from urllib.parse import urlparse

from dotenv import find_dotenv, load_dotenv

from grepowski.prompts import SYSTEM_PROMPT

load_dotenv(find_dotenv(usecwd=True))

ENV_PREFIX = "GREPOWSKI_"

# Fragmentation
DEFAULT_LINES_PER_BLOCK = 10
DEFAULT_BLOCKS_PER_FRAGMENT = 3

# Chat completion endpoint
DEFAULT_URL = "http://127.0.0.1:8080/v1/chat/completions"
DEFAULT_TEMPERATURE = 0.2
CHAT_COMPLETIONS_SUFFIX = "/chat/completions"

# Dispatch and reliability
DEFAULT_CONCURRENCY = 4
DEFAULT_TIMEOUT_S = 60.0


class ConfigError(ValueError):
    """Raised when run configuration is invalid. Nothing has been read yet."""


def _env(name: str) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_int(name: str) -> int | None:
    raw = _env(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}.") from exc


def _env_float(name: str) -> float | None:
    raw = _env(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}.") from exc


def _env_flag(name: str) -> bool | None:
    raw = _env(name)
    if raw is None:
        return None
    return raw.lower() in {"1", "true", "yes"}


def _require_positive_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}.")
    if value < 1:
        raise ConfigError(f"{name} must be >= 1, got {value}.")


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one run, built once at startup."""

    model: str
    lines_per_block: int = DEFAULT_LINES_PER_BLOCK
    blocks_per_fragment: int = DEFAULT_BLOCKS_PER_FRAGMENT
    temperature: float = DEFAULT_TEMPERATURE
    url: str = DEFAULT_URL
    token: str | None = None
    max_tokens: int | None = None
    concurrency: int = DEFAULT_CONCURRENCY
    timeout_s: float = DEFAULT_TIMEOUT_S
    system_prompt: str = SYSTEM_PROMPT
    offline: bool = False

    def __post_init__(self) -> None:
        _require_positive_int("lines_per_block", self.lines_per_block)
        _require_positive_int("blocks_per_fragment", self.blocks_per_fragment)
        _require_positive_int("concurrency", self.concurrency)
        if self.max_tokens is not None:
            _require_positive_int("max_tokens", self.max_tokens)

        if not isinstance(self.model, str) or not self.model.strip():
            raise ConfigError(
                "A model identifier is required (--model or GREPOWSKI_MODEL)."
            )
        if not math.isfinite(self.temperature) or self.temperature < 0:
            raise ConfigError(f"temperature must be a finite number >= 0, got {self.temperature}.")
        if not math.isfinite(self.timeout_s) or self.timeout_s <= 0:
            raise ConfigError(f"timeout_s must be a finite number > 0, got {self.timeout_s}.")

        parsed = urlparse(self.url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ConfigError(f"Endpoint URL must be http(s)://host/..., got {self.url!r}.")

    @property
    def base_url(self) -> str:
        """Endpoint URL without the chat-completions path, as the SDK expects."""
        url = self.url.rstrip("/")
        if url.endswith(CHAT_COMPLETIONS_SUFFIX):
            url = url[: -len(CHAT_COMPLETIONS_SUFFIX)]
        return url


def load_config(**overrides: object) -> RunConfig:
    """Build a RunConfig from GREPOWSKI_* env values, then explicit overrides.

    Overrides set to ``None`` are treated as "not given" so CLI flags without
    a value fall back to the environment and then to the defaults.
    """
    values: dict[str, object] = {
        "model": _env("MODEL") or "",
        "lines_per_block": _env_int("LINES_PER_BLOCK"),
        "blocks_per_fragment": _env_int("BLOCKS_PER_FRAGMENT"),
        "temperature": _env_float("TEMPERATURE"),
        "url": _env("URL"),
        "token": _env("TOKEN"),
        "max_tokens": _env_int("MAX_TOKENS"),
        "concurrency": _env_int("CONCURRENCY"),
        "timeout_s": _env_float("TIMEOUT_S"),
        "system_prompt": _env("SYSTEM_PROMPT"),
        "offline": _env_flag("OFFLINE"),
    }
    unknown = set(overrides) - set(values)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}.")
    for key, value in overrides.items():
        if value is not None:
            values[key] = value

    return RunConfig(**{key: value for key, value in values.items() if value is not None})
