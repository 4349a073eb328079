from __future__ import annotations
import os

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

"""
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import ProviderConfigurationError

DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
DEFAULT_MODEL = "deepseek-chat"


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    api_key: str | None = None
    base_url: str = DEFAULT_BASE_URL

    # Request defaults
    default_model: str = DEFAULT_MODEL
    temperature: float = 0.7
    max_tokens: int = 1000

    # Reliability
    timeout_s: float = 30.0
    max_retries: int = 3
    backoff_base_s: float = 1.0
    backoff_jitter_s: float = 0.0
    backoff_max_s: float = 30.0

    def __post_init__(self) -> None:
        if self.timeout_s <= 0:
            raise ProviderConfigurationError("timeout_s must be greater than 0")
        if self.max_retries < 1:
            raise ProviderConfigurationError("max_retries must be at least 1")
        if self.temperature < 0:
            raise ProviderConfigurationError("temperature must be >= 0")
        if self.max_tokens <= 0:
            raise ProviderConfigurationError("max_tokens must be greater than 0")
        if self.backoff_base_s < 0 or self.backoff_jitter_s < 0 or self.backoff_max_s < 0:
            raise ProviderConfigurationError("backoff settings must be >= 0")
        if not self.base_url or not self.base_url.strip():
            raise ProviderConfigurationError("base_url must be a non-empty string")

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @staticmethod
    def from_env() -> "ProviderConfig":
        return ProviderConfig(
            api_key=os.getenv("TUTORPIPE_PROVIDER_API_KEY"),
            base_url=os.getenv("TUTORPIPE_PROVIDER_BASE_URL", DEFAULT_BASE_URL),
            default_model=os.getenv("TUTORPIPE_PROVIDER_MODEL", DEFAULT_MODEL),
            temperature=float(os.getenv("TUTORPIPE_PROVIDER_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("TUTORPIPE_PROVIDER_MAX_TOKENS", "1000")),
            timeout_s=float(os.getenv("TUTORPIPE_PROVIDER_TIMEOUT_S", "30")),
            max_retries=int(os.getenv("TUTORPIPE_PROVIDER_MAX_RETRIES", "3")),
            backoff_base_s=float(os.getenv("TUTORPIPE_PROVIDER_BACKOFF_BASE_S", "1.0")),
            backoff_jitter_s=float(os.getenv("TUTORPIPE_PROVIDER_BACKOFF_JITTER_S", "0")),
            backoff_max_s=float(os.getenv("TUTORPIPE_PROVIDER_BACKOFF_MAX_S", "30")),
        )

    @staticmethod
    def from_options(options: Mapping[str, Any]) -> "ProviderConfig":
        """
        Build a config from the client option names used by the web frontend.

        `timeout` is expressed in milliseconds there. Unknown keys are ignored.
        """
        kwargs: dict[str, Any] = {}
        if options.get("apiKey") is not None:
            kwargs["api_key"] = str(options["apiKey"])
        if options.get("baseURL"):
            kwargs["base_url"] = str(options["baseURL"])
        if options.get("model"):
            kwargs["default_model"] = str(options["model"])
        if options.get("temperature") is not None:
            kwargs["temperature"] = float(options["temperature"])
        if options.get("max_tokens") is not None:
            kwargs["max_tokens"] = int(options["max_tokens"])
        if options.get("timeout") is not None:
            kwargs["timeout_s"] = float(options["timeout"]) / 1000.0
        if options.get("maxRetries") is not None:
            kwargs["max_retries"] = int(options["maxRetries"])
        return ProviderConfig(**kwargs)
