"""
Cross-identity attack patterns.

Both heuristics look at every identity tracked by the store, so one origin
guessing across many accounts is caught even when no single account is
locked.
"""
import logging
from datetime import datetime
from typing import Optional

from security.state import IDENTITY_KEY_PREFIX, IdentityState

logger = logging.getLogger(__name__)

RAPID_FIRE = "rapid_fire_attempts"
DISTRIBUTED = "distributed_attack_pattern"


class PatternDetector:
    def __init__(self, store, policy, log, clock=None):
        self.store = store
        self.policy = policy
        self.log = log
        self._clock = clock or datetime.utcnow

    def _states(self):
        for key in self.store.keys(IDENTITY_KEY_PREFIX):
            state = IdentityState.from_dict(self.store.get(key))
            if state is not None:
                yield key[len(IDENTITY_KEY_PREFIX):], state

    def recent_attempts(self, window) -> list[datetime]:
        """Failure timestamps across all identities inside the trailing window."""
        cutoff = self._clock() - window
        stamps = []
        for _identity, state in self._states():
            history = state.recent_attempts
            if not history and state.last_attempt:
                history = [state.last_attempt]
            stamps.extend(t for t in history if t >= cutoff)
        return sorted(stamps, reverse=True)

    def recent_identities(self, window) -> list[str]:
        """Identities whose last failure falls inside the trailing window."""
        cutoff = self._clock() - window
        return sorted(
            identity for identity, state in self._states()
            if state.last_attempt and state.last_attempt >= cutoff
        )

    def detect(self, identity: Optional[str] = None) -> Optional[str]:
        """
        Return the name of the active pattern, or None.
        Logged on every detection, not only the first.
        """
        p = self.policy

        attempts = self.recent_attempts(p.rapid_fire_window)
        if len(attempts) >= p.rapid_fire_threshold:
            logger.warning("Rapid-fire login attempts: %d in %ss", len(attempts), p.rapid_fire_window.total_seconds())
            self.log.append(RAPID_FIRE, "high", {
                "identity": identity,
                "attempt_count": len(attempts),
                "window_seconds": int(p.rapid_fire_window.total_seconds()),
            })
            return RAPID_FIRE

        identities = self.recent_identities(p.distributed_window)
        if len(identities) >= p.distributed_threshold:
            logger.warning("Distributed login pattern across %d identities", len(identities))
            self.log.append(DISTRIBUTED, "high", {
                "identities": identities,
                "window_seconds": int(p.distributed_window.total_seconds()),
            })
            return DISTRIBUTED

        return None
