"""Runtime configuration for the search-fetch-summarize pipeline.

Architectural role:
    Centralizes provider, network, prompt-budget, and model settings in one frozen
    `Settings` object. It is built once at startup and handed to the search client,
    fetcher, model client, and pipeline constructors. Nothing reads the environment
    after construction.

Relevant environment variables (read by `Settings.from_env`):
    - `SEARCH_PROVIDER`, `SEARCH_ENDPOINT`, `SEARCH_MIN_INTERVAL`
    - `WEB_TIMEOUT_SECONDS`, `WEB_MAX_RETRIES`, `WEB_BACKOFF_SECONDS`
    - `WEB_USER_AGENT`, `WEB_CONCURRENCY_LIMIT`, `WEB_FETCH_RATE_LIMIT`
    - `EXTRACTOR_MODE`, `MAX_PROMPT_CHARS`
    - `MODEL_ENDPOINT`, `MODEL_NAME`, `MODEL_TIMEOUT_SECONDS`,
      `MODEL_TEMPERATURE`, `MODEL_MAX_TOKENS`, `MODEL_STREAM`
    - `PIPELINE_DEADLINE`, `ALL_FAILED_POLICY`, `LOG_LEVEL`

Failure behavior:
    Unparseable or out-of-range values raise `ValueError` from `validate()`.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any, Mapping

from dotenv import load_dotenv


SEARCH_PROVIDERS = ("google", "duckduckgo")
EXTRACTOR_MODES = ("visible", "readable")
ALL_FAILED_POLICIES = ("degrade", "abort")

DEFAULT_RESULT_COUNT = 3
DEFAULT_MODEL = "llama3.2:latest"
DEFAULT_MODEL_ENDPOINT = "http://localhost:11434/api/generate"
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; searchsum/1.0)"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Read-only pipeline configuration.

    Attributes:
        search_provider: `google` or `duckduckgo`.
        search_endpoint: Optional override of the provider results URL.
        search_min_interval: Minimum spacing in seconds between provider calls.
        timeout_seconds: Per-request timeout for search and page fetches.
        max_retries: Retries on transient network errors per page fetch.
        backoff_seconds: Base delay of the exponential retry backoff.
        user_agent: `User-Agent` header for outbound page and search requests.
        concurrency_limit: Fetch ceiling; `None` means one slot per URL.
        fetch_rate_limit: Page fetches started per second; `None` disables it.
        extractor_mode: `visible` (all visible text) or `readable` (trafilatura).
        max_prompt_chars: Upper bound of the prompt text length.
        model_endpoint: Completion endpoint (`/api/generate` compatible).
        model_name: Default model when the caller does not pass one.
        model_timeout_seconds: Read timeout for completion requests.
        temperature: Sampling temperature forwarded as a model option.
        max_tokens: Forwarded as `num_predict`.
        stream: Whether completions are consumed incrementally.
        deadline_seconds: Overall pipeline deadline; `None` disables it.
        all_failed_policy: `degrade` or `abort` when no page yields text.
        log_level: Logging level name used by the CLI.
    """

    search_provider: str = "google"
    search_endpoint: str | None = None
    search_min_interval: float = 1.0

    timeout_seconds: float = 10.0
    max_retries: int = 1
    backoff_seconds: float = 0.5
    user_agent: str = DEFAULT_USER_AGENT
    concurrency_limit: int | None = None
    fetch_rate_limit: float | None = None
    extractor_mode: str = "visible"

    max_prompt_chars: int = 24000

    model_endpoint: str = DEFAULT_MODEL_ENDPOINT
    model_name: str = DEFAULT_MODEL
    model_timeout_seconds: float = 120.0
    temperature: float = 0.1
    max_tokens: int = 2048
    stream: bool = True

    deadline_seconds: float | None = 120.0
    all_failed_policy: str = "degrade"
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Reject inconsistent values early.

        Raises:
            ValueError: On unknown enum-like values or non-positive bounds.
        """
        if self.search_provider not in SEARCH_PROVIDERS:
            raise ValueError(f"Unsupported search provider: {self.search_provider}")
        if self.extractor_mode not in EXTRACTOR_MODES:
            raise ValueError(f"Unsupported extractor mode: {self.extractor_mode}")
        if self.all_failed_policy not in ALL_FAILED_POLICIES:
            raise ValueError(f"Unsupported all-failed policy: {self.all_failed_policy}")
        if self.timeout_seconds <= 0 or self.model_timeout_seconds <= 0:
            raise ValueError("Timeouts must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff_seconds < 0 or self.search_min_interval < 0:
            raise ValueError("Delays must be >= 0")
        if self.concurrency_limit is not None and self.concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        if self.fetch_rate_limit is not None and self.fetch_rate_limit <= 0:
            raise ValueError("fetch_rate_limit must be positive")
        if self.max_prompt_chars < 1:
            raise ValueError("max_prompt_chars must be >= 1")
        if self.deadline_seconds is not None and self.deadline_seconds <= 0:
            raise ValueError("deadline_seconds must be positive")

    def replace(self, **changes: Any) -> "Settings":
        """Return a validated copy with `changes` applied."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read instead of `os.environ`. When omitted, a
                `.env` file in the working directory is loaded first.

        Returns:
            Validated `Settings`. Unset variables keep dataclass defaults.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        env = _EnvReader(environ)
        defaults = cls()

        return cls(
            search_provider=env.text("SEARCH_PROVIDER", defaults.search_provider).lower(),
            search_endpoint=env.optional_text("SEARCH_ENDPOINT"),
            search_min_interval=env.number("SEARCH_MIN_INTERVAL", defaults.search_min_interval),
            timeout_seconds=env.number("WEB_TIMEOUT_SECONDS", defaults.timeout_seconds),
            max_retries=env.integer("WEB_MAX_RETRIES", defaults.max_retries),
            backoff_seconds=env.number("WEB_BACKOFF_SECONDS", defaults.backoff_seconds),
            user_agent=env.text("WEB_USER_AGENT", defaults.user_agent),
            concurrency_limit=env.optional_integer("WEB_CONCURRENCY_LIMIT"),
            fetch_rate_limit=env.optional_number("WEB_FETCH_RATE_LIMIT", defaults.fetch_rate_limit),
            extractor_mode=env.text("EXTRACTOR_MODE", defaults.extractor_mode).lower(),
            max_prompt_chars=env.integer("MAX_PROMPT_CHARS", defaults.max_prompt_chars),
            model_endpoint=env.text("MODEL_ENDPOINT", defaults.model_endpoint),
            model_name=env.text("MODEL_NAME", defaults.model_name),
            model_timeout_seconds=env.number("MODEL_TIMEOUT_SECONDS", defaults.model_timeout_seconds),
            temperature=env.number("MODEL_TEMPERATURE", defaults.temperature),
            max_tokens=env.integer("MODEL_MAX_TOKENS", defaults.max_tokens),
            stream=env.flag("MODEL_STREAM", defaults.stream),
            deadline_seconds=env.optional_number("PIPELINE_DEADLINE", defaults.deadline_seconds),
            all_failed_policy=env.text("ALL_FAILED_POLICY", defaults.all_failed_policy).lower(),
            log_level=env.text("LOG_LEVEL", defaults.log_level).upper(),
        )


class _EnvReader:
    """Typed accessors over an environment mapping."""

    def __init__(self, environ: Mapping[str, str]) -> None:
        self._environ = environ

    def _raw(self, name: str) -> str | None:
        value = self._environ.get(name)
        if value is None or not value.strip():
            return None
        return value.strip()

    def text(self, name: str, default: str) -> str:
        value = self._raw(name)
        return default if value is None else value

    def optional_text(self, name: str) -> str | None:
        return self._raw(name)

    def integer(self, name: str, default: int) -> int:
        value = self._raw(name)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{name} must be an integer, got {value!r}") from None

    def optional_integer(self, name: str) -> int | None:
        value = self._raw(name)
        if value is None:
            return None
        return self.integer(name, 0)

    def number(self, name: str, default: float) -> float:
        value = self._raw(name)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            raise ValueError(f"{name} must be a number, got {value!r}") from None

    def optional_number(self, name: str, default: float | None) -> float | None:
        value = self._raw(name)
        if value is None:
            return default
        # "0" and "none" disable optional limits such as the deadline or fetch rate.
        if value.lower() in {"none", "off", "0"}:
            return None
        return self.number(name, 0.0)

    def flag(self, name: str, default: bool) -> bool:
        value = self._raw(name)
        if value is None:
            return default
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"{name} must be a boolean, got {value!r}")
