"""Settings loading and validation logic.

Provides ``_SettingsLoader``, a mixin class whose methods are inherited by
``Settings`` (defined in ``settings.py``). Splitting loading logic into its
own module keeps ``settings.py`` focused on field definitions and accessors.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, cast

if TYPE_CHECKING:
    from business_case_ai.config.settings import Settings

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from business_case_ai.config.parsing import (
    _normalize_reasoning_effort,
    _normalize_verbosity,
    _parse_bool,
    _parse_float,
    _parse_int,
    _parse_list,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "BCAI_"
PROJECT_CONFIG_NAME = "business-case-ai.toml"

# TOML [section] key -> Settings attribute
_TOML_FIELDS: Dict[str, Dict[str, str]] = {
    "llm": {
        "api_key": "api_key",
        "base_url": "base_url",
        "model": "model",
        "temperature": "temperature",
        "max_output_tokens": "max_output_tokens",
        "min_output_tokens": "min_output_tokens",
        "timeout": "timeout",
        "max_retry_time": "max_retry_time",
        "timeout_increment": "timeout_increment",
        "max_retries": "max_retries",
        "reasoning_effort": "reasoning_effort",
        "text_verbosity": "text_verbosity",
    },
    "features": {
        "ai_enabled": "ai_enabled",
    },
    "parser": {
        "trivial_phrases": "trivial_phrases",
        "trivial_min_length": "trivial_min_length",
    },
    "storage": {
        "cache_dir": "cache_dir",
        "cache_ttl": "cache_ttl",
        "data_dir": "data_dir",
        "history_limit": "history_limit",
    },
    "logging": {
        "level": "log_level",
        "structured": "structured_logging",
    },
}

_INT_FIELDS = {
    "max_output_tokens",
    "min_output_tokens",
    "timeout",
    "max_retry_time",
    "timeout_increment",
    "max_retries",
    "trivial_min_length",
    "cache_ttl",
    "history_limit",
}
_FLOAT_FIELDS = {"temperature"}
_BOOL_FIELDS = {"ai_enabled", "structured_logging"}
_PATH_FIELDS = {"cache_dir", "data_dir"}
_LIST_FIELDS = {"trivial_phrases"}


class _SettingsLoader:
    """Mixin providing config-loading methods for ``Settings``.

    At runtime ``self`` is always a ``Settings`` instance.
    """

    if TYPE_CHECKING:
        api_key: str
        model: str
        max_output_tokens: int
        min_output_tokens: int
        max_retries: int
        log_level: str
        reasoning_effort: Optional[str]
        text_verbosity: Optional[str]
        startup_warnings: List[str]

        def _add_startup_warning(self, message: str) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "Settings":
        """
        Create settings from environment variables and an optional TOML file.

        Priority (highest to lowest):
        1. Environment variables (``BCAI_*``, plus ``OPENAI_API_KEY``)
        2. Explicit config file, ``BCAI_CONFIG``, or ./business-case-ai.toml
        3. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get(f"{ENV_PREFIX}CONFIG")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            project_config = Path(PROJECT_CONFIG_NAME)
            if project_config.exists():
                config._load_toml(project_config)
                logger.debug("Loaded project config from %s", project_config)

        config._load_env()
        config._validate()

        return cast("Settings", config)

    def _assign(self, attr: str, value: Any) -> None:
        if attr in _INT_FIELDS:
            value = _parse_int(value, attr, getattr(self, attr))
        elif attr in _FLOAT_FIELDS:
            value = _parse_float(value, attr, getattr(self, attr))
        elif attr in _BOOL_FIELDS:
            value = _parse_bool(value)
        elif attr in _PATH_FIELDS:
            value = Path(value)
        elif attr in _LIST_FIELDS:
            value = _parse_list(value)
        elif attr == "log_level":
            value = str(value).upper()
        elif attr == "reasoning_effort":
            value = _normalize_reasoning_effort(value)
        elif attr == "text_verbosity":
            value = _normalize_verbosity(value)
        setattr(self, attr, value)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning("Config file not found: %s", path)
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.error("Failed to load config from %s: %s", path, exc)
            return

        for section, fields in _TOML_FIELDS.items():
            values = data.get(section)
            if not isinstance(values, dict):
                continue
            for key, attr in fields.items():
                if key in values:
                    self._assign(attr, values[key])

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        if api_key := os.environ.get("OPENAI_API_KEY"):
            self.api_key = api_key

        for fields in _TOML_FIELDS.values():
            for attr in fields.values():
                if value := os.environ.get(f"{ENV_PREFIX}{attr.upper()}"):
                    self._assign(attr, value)

    def _validate(self) -> None:
        """Clamp inconsistent values and collect startup warnings."""
        if self.min_output_tokens < 1:
            self._add_startup_warning("min_output_tokens must be >= 1; using 1")
            self.min_output_tokens = 1
        if self.max_output_tokens < self.min_output_tokens:
            self._add_startup_warning(
                f"max_output_tokens ({self.max_output_tokens}) is below min_output_tokens; "
                f"using {self.min_output_tokens}"
            )
            self.max_output_tokens = self.min_output_tokens
        if not 1 <= self.max_retries <= 3:
            clamped = min(3, max(1, self.max_retries))
            self._add_startup_warning(f"max_retries must be between 1 and 3; using {clamped}")
            self.max_retries = clamped
        if not self.api_key:
            self._add_startup_warning("No API key configured; AI-enabled runs will fail until one is set")

        for warning in self.startup_warnings:
            logger.warning(warning)
