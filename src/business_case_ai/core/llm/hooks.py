"""Observer bus for transport side effects.

The transport publishes events; subscribers (prompt capture, audit logging)
register independently of the transport logic. A failing subscriber is
logged and never breaks the call.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, DefaultDict, List

if TYPE_CHECKING:
    from business_case_ai.core.llm.models import LLMRequest, ResponseEnvelope

logger = logging.getLogger(__name__)


class TransportEvent(str, Enum):
    REQUEST_SENT = "request_sent"
    RESPONSE_RECEIVED = "response_received"
    RETRY_SCHEDULED = "retry_scheduled"


class TransportHooks:
    """Hooks for transport lifecycle events."""

    def __init__(self) -> None:
        self._subscribers: DefaultDict[TransportEvent, List[Callable[..., Any]]] = defaultdict(list)

    def subscribe(self, event: TransportEvent, callback: Callable[..., Any]) -> None:
        self._subscribers[TransportEvent(event)].append(callback)

    def unsubscribe(self, event: TransportEvent, callback: Callable[..., Any]) -> None:
        callbacks = self._subscribers.get(TransportEvent(event), [])
        if callback in callbacks:
            callbacks.remove(callback)

    def on_request_sent(self, callback: Callable[["LLMRequest", int], Any]) -> None:
        """Register callback receiving (request, attempt) before each HTTP call."""
        self.subscribe(TransportEvent.REQUEST_SENT, callback)

    def on_response_received(self, callback: Callable[["ResponseEnvelope", int], Any]) -> None:
        """Register callback receiving (envelope, attempt) after a successful call."""
        self.subscribe(TransportEvent.RESPONSE_RECEIVED, callback)

    def on_retry_scheduled(self, callback: Callable[[int, float, Exception], Any]) -> None:
        """Register callback receiving (attempt, delay, error) before a retry sleep."""
        self.subscribe(TransportEvent.RETRY_SCHEDULED, callback)

    def emit(self, event: TransportEvent, *args: Any) -> None:
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(*args)
            except Exception as exc:
                logger.error("%s hook failed: %s", event.value, exc)

    def emit_request_sent(self, request: "LLMRequest", attempt: int) -> None:
        self.emit(TransportEvent.REQUEST_SENT, request, attempt)

    def emit_response_received(self, envelope: "ResponseEnvelope", attempt: int) -> None:
        self.emit(TransportEvent.RESPONSE_RECEIVED, envelope, attempt)

    def emit_retry_scheduled(self, attempt: int, delay: float, error: Exception) -> None:
        self.emit(TransportEvent.RETRY_SCHEDULED, attempt, delay, error)
