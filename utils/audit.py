import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from flask import has_request_context, request

logger = logging.getLogger(__name__)

LOGIN_LOG_KEY = "security_logs"
BEHAVIOR_LOG_KEY = "security_events"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def notifies(self) -> bool:
        return self in (Severity.HIGH, Severity.CRITICAL)


@dataclass
class SecurityEvent:
    type: str
    severity: Severity
    timestamp: datetime
    data: dict = field(default_factory=dict)
    user_agent: str = "unknown"
    url: str = "unknown"

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
            "user_agent": self.user_agent,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, raw) -> "SecurityEvent":
        if not isinstance(raw, dict):
            raise ValueError("event must be a mapping")
        data = raw.get("data") or {}
        if not isinstance(data, dict):
            raise ValueError("event data must be a mapping")
        return cls(
            type=str(raw["type"]),
            severity=Severity(raw.get("severity", "low")),
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            data=data,
            user_agent=str(raw.get("user_agent") or "unknown"),
            url=str(raw.get("url") or "unknown"),
        )


def request_context() -> dict:
    """Agent string and URL of the request being served, if any."""
    if not has_request_context():
        return {"user_agent": "unknown", "url": "unknown"}
    user_agent = request.headers.get("User-Agent", "")
    return {
        "user_agent": user_agent[:255] if user_agent else "unknown",
        "url": request.url,
    }


class EventLog:
    """
    Append-only, capped log kept under a single store key.

    Appends read-modify-write the whole list; once the cap is exceeded the
    oldest entries are evicted first. Concurrent writers sharing one store
    are last-writer-wins.
    """

    def __init__(self, store, key: str, capacity: int, context=None, clock=None):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.store = store
        self.key = key
        self.capacity = capacity
        self._context = context or request_context
        self._clock = clock or datetime.utcnow

    def _raw(self) -> list:
        raw = self.store.get(self.key)
        return raw if isinstance(raw, list) else []

    def append(self, type: str, severity=Severity.LOW, data=None) -> SecurityEvent:
        ctx = self._context() or {}
        event = SecurityEvent(
            type=type,
            severity=Severity(severity),
            timestamp=self._clock(),
            data=dict(data or {}),
            user_agent=ctx.get("user_agent", "unknown"),
            url=ctx.get("url", "unknown"),
        )

        entries = self._raw()
        entries.append(event.to_dict())
        if len(entries) > self.capacity:
            del entries[: len(entries) - self.capacity]
        self.store.set(self.key, entries)

        logger.warning("SECURITY EVENT: %s %s %s", event.type, event.severity.value, event.data)
        return event

    def entries(self) -> list[SecurityEvent]:
        out = []
        for raw in self._raw():
            try:
                out.append(SecurityEvent.from_dict(raw))
            except (KeyError, TypeError, ValueError):
                continue
        return out

    def now(self) -> datetime:
        return self._clock()

    def since(self, cutoff: datetime) -> list[SecurityEvent]:
        return [e for e in self.entries() if e.timestamp > cutoff]

    def recent(self, hours_back: float = 24) -> list[SecurityEvent]:
        return self.since(self._clock() - timedelta(hours=hours_back))

    def clear(self) -> None:
        self.store.delete(self.key)

    def export(self) -> str:
        return json.dumps([e.to_dict() for e in self.entries()], indent=2)
