"""Configuration package for business-case-ai.

Sub-modules:
    parsing    – Boolean/list/choice parsing helpers
    provider   – ConfigProvider protocol, DictConfigProvider
    settings   – Settings dataclass, get_settings/set_settings globals
    loader     – Settings loading/validation mixin (_SettingsLoader)
    decorators – log_call, timed
"""

from business_case_ai.config.decorators import log_call, timed
from business_case_ai.config.provider import ConfigProvider, DictConfigProvider
from business_case_ai.config.settings import (
    DEFAULT_BASE_URL,
    DEFAULT_TRIVIAL_PHRASES,
    Settings,
    get_settings,
    set_settings,
)

__all__ = [
    "ConfigProvider",
    "DEFAULT_BASE_URL",
    "DEFAULT_TRIVIAL_PHRASES",
    "DictConfigProvider",
    "Settings",
    "get_settings",
    "log_call",
    "set_settings",
    "timed",
]
