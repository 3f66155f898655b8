"""
Attempt governor: per-identity and per-device throttling of login attempts.

The host calls `can_attempt_login` before submitting credentials and one of
`record_failed_attempt` / `record_successful_login` once the identity
provider has answered. Every call reads fresh state from the store.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from security.patterns import PatternDetector
from security.state import DEVICE_KEY, DeviceState, IdentityState, identity_key, normalize_identity
from utils.audit import Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardPolicy:
    max_attempts: int = 5
    challenge_threshold: int = 3
    initial_lockout: timedelta = timedelta(minutes=5)
    lockout_multiplier: int = 2
    rapid_fire_window: timedelta = timedelta(seconds=60)
    rapid_fire_threshold: int = 10
    distributed_window: timedelta = timedelta(seconds=300)
    distributed_threshold: int = 5
    attempt_history_size: int = 20

    def lockout_duration(self, lockout_level: int) -> timedelta:
        return self.initial_lockout * (self.lockout_multiplier ** lockout_level)

    @classmethod
    def from_config(cls, config) -> "GuardPolicy":
        return cls(
            max_attempts=config.get("GUARD_MAX_ATTEMPTS", 5),
            challenge_threshold=config.get("GUARD_CHALLENGE_THRESHOLD", 3),
            initial_lockout=timedelta(seconds=config.get("GUARD_INITIAL_LOCKOUT_SECONDS", 300)),
            lockout_multiplier=config.get("GUARD_LOCKOUT_MULTIPLIER", 2),
            rapid_fire_window=timedelta(seconds=config.get("GUARD_RAPID_FIRE_WINDOW_SECONDS", 60)),
            rapid_fire_threshold=config.get("GUARD_RAPID_FIRE_THRESHOLD", 10),
            distributed_window=timedelta(seconds=config.get("GUARD_DISTRIBUTED_WINDOW_SECONDS", 300)),
            distributed_threshold=config.get("GUARD_DISTRIBUTED_THRESHOLD", 5),
        )


@dataclass
class AttemptOutcome:
    attempt_count: int
    remaining_attempts: int
    requires_challenge: bool
    locked: bool
    lockout_duration: Optional[timedelta]
    message: str


def format_duration(remaining: timedelta) -> str:
    """Whole minutes, rounded up. Empty once nothing remains."""
    seconds = remaining.total_seconds()
    if seconds <= 0:
        return ""
    minutes = math.ceil(seconds / 60)
    if minutes == 1:
        return "1 minute"
    return f"{minutes} minutes"


def _noop_notify(kind: str, message: str) -> None:
    return None


class AttemptGovernor:
    def __init__(
        self,
        store,
        log,
        policy: Optional[GuardPolicy] = None,
        notify: Optional[Callable[[str, str], None]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.log = log
        self.policy = policy or GuardPolicy()
        self.notify = notify or _noop_notify
        self._clock = clock or datetime.utcnow
        self.patterns = PatternDetector(store, self.policy, log, clock=self._clock)

    # -- state access -------------------------------------------------

    def _load(self, identity: str, now: datetime) -> IdentityState:
        state = IdentityState.from_dict(self.store.get(identity_key(identity)))
        if state is None:
            return IdentityState()
        return state.expire(now)

    def _load_device(self) -> DeviceState:
        return DeviceState.from_dict(self.store.get(DEVICE_KEY)) or DeviceState()

    def get_state(self, identity: str) -> IdentityState:
        """Current state as of now; expired lockouts read as cleared. Never writes."""
        return self._load(identity, self._clock())

    def get_device_state(self) -> DeviceState:
        return self._load_device()

    # -- decisions ----------------------------------------------------

    def detect_suspicious_patterns(self, identity: Optional[str] = None) -> Optional[str]:
        return self.patterns.detect(identity)

    def can_attempt_login(self, identity: str) -> bool:
        name = normalize_identity(identity)
        now = self._clock()

        if self._load(name, now).locked_at(now):
            return False
        if self._load_device().locked_at(now):
            return False
        if self.patterns.detect(name):
            return False
        return True

    def record_failed_attempt(self, identity: str) -> AttemptOutcome:
        name = normalize_identity(identity)
        now = self._clock()
        p = self.policy

        state = self._load(name, now)
        already_locked = state.locked_at(now)

        state.attempt_count += 1
        state.last_attempt = now
        state.recent_attempts = (state.recent_attempts + [now])[-p.attempt_history_size:]
        if state.attempt_count >= p.challenge_threshold:
            state.requires_challenge = True

        lockout_duration = None
        if state.attempt_count >= p.max_attempts and not already_locked:
            lockout_duration = p.lockout_duration(state.lockout_level)
            state.block_until = now + lockout_duration
            state.is_blocked = True
            state.lockout_level += 1
        self.store.set(identity_key(name), state.to_dict())

        # Device-level mirror: counts every failure, inherits identity lockouts
        device = self._load_device()
        device.attempts += 1
        device.last_attempt = now
        if lockout_duration is not None:
            device.block_until = state.block_until
        self.store.set(DEVICE_KEY, device.to_dict())

        locked = state.locked_at(now)
        remaining = max(0, p.max_attempts - state.attempt_count)
        if lockout_duration is not None:
            logger.warning(
                "Identity %s locked for %s after %d failed attempts (level %d)",
                name, lockout_duration, state.attempt_count, state.lockout_level,
            )
            message = (
                f"Account temporarily locked for {format_duration(lockout_duration)}. "
                "Too many failed login attempts."
            )
            kind = "lockout"
        elif locked:
            message = f"Account temporarily locked. Try again in {format_duration(state.block_until - now)}."
            kind = "lockout"
        else:
            message = f"Login failed. {remaining} attempts remaining."
            if state.requires_challenge:
                message += " Please complete the verification challenge."
            kind = "warning"

        self.log.append("failed_login_attempt", Severity.MEDIUM, {
            "identity": name,
            "attempt_count": state.attempt_count,
            "locked": locked,
            "lockout_level": state.lockout_level,
        })
        self.notify(kind, message)

        return AttemptOutcome(
            attempt_count=state.attempt_count,
            remaining_attempts=remaining,
            requires_challenge=state.requires_challenge,
            locked=locked,
            lockout_duration=lockout_duration,
            message=message,
        )

    def record_successful_login(self, identity: str) -> None:
        """Clears the failure streak and the device block. The lockout level is kept."""
        name = normalize_identity(identity)
        previous = self._load(name, self._clock())

        self.store.set(identity_key(name), IdentityState(lockout_level=previous.lockout_level).to_dict())
        self.store.delete(DEVICE_KEY)

        logger.info("Successful login cleared guard state for %s", name)
        self.log.append("successful_login", Severity.LOW, {"identity": name})

    def reset_lockout_level(self, identity: str) -> None:
        """Administrative reset; the only path that lowers a lockout level."""
        name = normalize_identity(identity)
        state = self._load(name, self._clock())
        state.lockout_level = 0
        self.store.set(identity_key(name), state.to_dict())
        self.log.append("lockout_level_reset", Severity.LOW, {"identity": name})

    # -- display helpers ----------------------------------------------

    def get_time_remaining(self, identity: str) -> timedelta:
        now = self._clock()
        candidates = [
            self._load(identity, now).block_until,
            self._load_device().block_until,
        ]
        remaining = [until - now for until in candidates if until is not None]
        if not remaining:
            return timedelta(0)
        return max(timedelta(0), max(remaining))

    def format_time_remaining(self, identity: str) -> str:
        return format_duration(self.get_time_remaining(identity))
