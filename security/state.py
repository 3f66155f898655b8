from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

IDENTITY_KEY_PREFIX = "login_security_"
DEVICE_KEY = "global_login_security"
# Keys live in a String(255) column
MAX_IDENTITY_LENGTH = 255 - len(IDENTITY_KEY_PREFIX)


def normalize_identity(identity: str) -> str:
    if not isinstance(identity, str) or not identity.strip():
        raise ValueError("identity must be a non-empty string")
    name = identity.strip().lower()
    if len(name) > MAX_IDENTITY_LENGTH:
        raise ValueError(f"identity longer than {MAX_IDENTITY_LENGTH} characters")
    return name


def identity_key(identity: str) -> str:
    return IDENTITY_KEY_PREFIX + normalize_identity(identity)


def _ts(value) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("timestamp must be an ISO string")
    return datetime.fromisoformat(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _count(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError("counter must be a non-negative integer")
    return value


@dataclass
class IdentityState:
    attempt_count: int = 0
    last_attempt: Optional[datetime] = None
    is_blocked: bool = False
    block_until: Optional[datetime] = None
    requires_challenge: bool = False
    lockout_level: int = 0
    # Failure timestamps, newest last, bounded by the policy
    recent_attempts: list[datetime] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "attempt_count": self.attempt_count,
            "last_attempt": _iso(self.last_attempt),
            "is_blocked": self.is_blocked,
            "block_until": _iso(self.block_until),
            "requires_challenge": self.requires_challenge,
            "lockout_level": self.lockout_level,
            "recent_attempts": [t.isoformat() for t in self.recent_attempts],
        }

    @classmethod
    def from_dict(cls, raw) -> Optional["IdentityState"]:
        """Parse stored state; anything malformed reads as absent (None)."""
        if not isinstance(raw, dict):
            return None
        try:
            recent = raw.get("recent_attempts") or []
            if not isinstance(recent, list):
                raise ValueError("recent_attempts must be a list")
            return cls(
                attempt_count=_count(raw.get("attempt_count", 0)),
                last_attempt=_ts(raw.get("last_attempt")),
                is_blocked=bool(raw.get("is_blocked", False)),
                block_until=_ts(raw.get("block_until")),
                requires_challenge=bool(raw.get("requires_challenge", False)),
                lockout_level=_count(raw.get("lockout_level", 0)),
                recent_attempts=[_ts(t) for t in recent],
            )
        except (TypeError, ValueError):
            return None

    def locked_at(self, now: datetime) -> bool:
        return self.block_until is not None and now < self.block_until

    def expire(self, now: datetime) -> "IdentityState":
        """
        View of this state at `now`. An elapsed lockout is cleared and the
        failure streak restarts; the challenge requirement is kept.
        """
        if self.block_until is None or now < self.block_until:
            self.is_blocked = self.block_until is not None
            return self
        self.is_blocked = False
        self.block_until = None
        self.attempt_count = 0
        # requires_challenge stays set with a zero count; only a successful
        # login clears it
        return self


@dataclass
class DeviceState:
    attempts: int = 0
    last_attempt: Optional[datetime] = None
    block_until: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "attempts": self.attempts,
            "last_attempt": _iso(self.last_attempt),
            "block_until": _iso(self.block_until),
        }

    @classmethod
    def from_dict(cls, raw) -> Optional["DeviceState"]:
        if not isinstance(raw, dict):
            return None
        try:
            return cls(
                attempts=_count(raw.get("attempts", 0)),
                last_attempt=_ts(raw.get("last_attempt")),
                block_until=_ts(raw.get("block_until")),
            )
        except (TypeError, ValueError):
            return None

    def locked_at(self, now: datetime) -> bool:
        return self.block_until is not None and now < self.block_until
