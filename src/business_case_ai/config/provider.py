"""Key-value configuration access.

Services depend on ``ConfigProvider`` rather than on a particular storage
engine. ``Settings`` satisfies the protocol; ``DictConfigProvider`` wraps a
plain mapping for embedding and tests.
"""

from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class ConfigProvider(Protocol):
    """Read-only key-value configuration source."""

    def get(self, key: str, default: Any = None) -> Any: ...


class DictConfigProvider:
    """``ConfigProvider`` backed by a dict, with optional fallback provider."""

    def __init__(
        self,
        values: Optional[Mapping[str, Any]] = None,
        fallback: Optional[ConfigProvider] = None,
    ) -> None:
        self._values: Dict[str, Any] = dict(values or {})
        self._fallback = fallback

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._values:
            return self._values[key]
        if self._fallback is not None:
            return self._fallback.get(key, default)
        return default

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
