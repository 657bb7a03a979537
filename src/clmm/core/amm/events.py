"""
Event sinks for pool telemetry.

Events are informational only; the pool never reads them back.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)

# Attributes LogRecord already owns; payload keys with these names are prefixed
_RESERVED_RECORD_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


class EventSink(ABC):
    """Receives (topic, payload) pairs after a state change commits."""

    @abstractmethod
    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        ...


class LoggingEventSink(EventSink):
    """Emits every event as an INFO log record tagged ``clmm.<topic>``."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self.log = log or logger

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        extra: dict[str, Any] = {"event": f"clmm.{topic}"}
        for key, value in payload.items():
            extra[f"event_{key}" if key in _RESERVED_RECORD_KEYS else key] = value
        self.log.info("Pool event %s", topic, extra=extra)


class RecordingEventSink(EventSink):
    """Keeps events in memory, for tests and replay."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        self.events.append((topic, dict(payload)))

    def topics(self) -> list[str]:
        return [topic for topic, _ in self.events]

    def last(self, topic: str) -> dict[str, Any] | None:
        for recorded_topic, payload in reversed(self.events):
            if recorded_topic == topic:
                return payload
        return None

    def clear(self) -> None:
        self.events.clear()
