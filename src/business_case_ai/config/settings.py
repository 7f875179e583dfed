"""Settings dataclass and global configuration state.

This module defines the ``Settings`` class (field declarations and simple
accessor methods) and the global ``get_settings`` / ``set_settings`` helpers
used by the CLI. Library code receives a ``Settings`` (or any
``ConfigProvider``) explicitly instead of reading the global.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, List, Optional

from business_case_ai.config.loader import _SettingsLoader

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TRIVIAL_PHRASES = ["pong", "how can i help"]

_HANDLER_NAME = "business_case_ai.console"


@dataclass
class Settings(_SettingsLoader):
    """Pipeline configuration with support for env vars and TOML overrides."""

    # LLM provider
    api_key: str = field(default="", repr=False)
    base_url: str = DEFAULT_BASE_URL
    model: str = "gpt-5-mini"
    max_output_tokens: int = 8000
    min_output_tokens: int = 256
    temperature: Optional[float] = 0.7
    reasoning_effort: Optional[str] = "medium"
    text_verbosity: Optional[str] = "medium"

    # Timeouts and retries (seconds)
    timeout: int = 300
    max_retry_time: int = 300
    timeout_increment: int = 30
    max_retries: int = 3

    # Feature switches
    ai_enabled: bool = True

    # Trivial-response filter
    trivial_phrases: List[str] = field(default_factory=lambda: list(DEFAULT_TRIVIAL_PHRASES))
    trivial_min_length: int = 20

    # Storage
    cache_dir: Path = field(default_factory=lambda: Path(".cache") / "business-case-ai" / "research")
    cache_ttl: int = 86400
    data_dir: Path = field(default_factory=lambda: Path(".business-case-ai"))
    history_limit: int = 20

    # Logging
    log_level: str = "INFO"
    structured_logging: bool = True

    startup_warnings: List[str] = field(default_factory=list, repr=False)

    def _add_startup_warning(self, message: str) -> None:
        if message and message not in self.startup_warnings:
            self.startup_warnings.append(message)

    def get(self, key: str, default: Any = None) -> Any:
        """Return a setting by name (``ConfigProvider`` interface)."""
        if key in {f.name for f in fields(self)}:
            return getattr(self, key)
        return default

    @property
    def jobs_dir(self) -> Path:
        return self.data_dir / "jobs"

    @property
    def log_path(self) -> Path:
        return self.data_dir / "api_logs.jsonl"

    @property
    def history_path(self) -> Path:
        return self.data_dir / "workflow_history.json"

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            # JSON-style structured logging
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        handler.set_name(_HANDLER_NAME)

        root_logger = logging.getLogger("business_case_ai")
        root_logger.setLevel(level)
        for existing in list(root_logger.handlers):
            if existing.get_name() == _HANDLER_NAME:
                root_logger.removeHandler(existing)
        root_logger.addHandler(handler)


# Global configuration instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Optional[Settings]) -> None:
    """Set (or clear) the global settings instance."""
    global _settings
    _settings = settings
