"""Tests for cross-identity attack pattern detection."""

from models import MemoryStore
from security.governor import AttemptGovernor
from security.patterns import DISTRIBUTED, RAPID_FIRE
from utils.audit import LOGIN_LOG_KEY, EventLog


def make_governor(clock):
    store = MemoryStore()
    log = EventLog(store, LOGIN_LOG_KEY, 100, clock=clock)
    return AttemptGovernor(store, log, clock=clock), log


def test_rapid_fire_across_identities_blocks_new_identity(clock) -> None:
    governor, log = make_governor(clock)
    # ten failures over four identities: nobody locked, too few identities for the distributed rule
    for identity, count in (("a@x.io", 3), ("b@x.io", 3), ("c@x.io", 2), ("d@x.io", 2)):
        for _ in range(count):
            governor.record_failed_attempt(identity)
            clock.advance(seconds=2)

    assert governor.detect_suspicious_patterns() == RAPID_FIRE
    assert governor.can_attempt_login("never-seen@x.io") is False

    rapid = [e for e in log.entries() if e.type == RAPID_FIRE]
    assert rapid and rapid[-1].data["attempt_count"] == 10
    assert rapid[-1].severity.value == "high"

    clock.advance(seconds=61)
    assert governor.can_attempt_login("never-seen@x.io") is True


def test_nine_attempts_are_not_rapid_fire(clock) -> None:
    governor, _ = make_governor(clock)
    for identity, count in (("a@x.io", 3), ("b@x.io", 3), ("c@x.io", 3)):
        for _ in range(count):
            governor.record_failed_attempt(identity)

    assert governor.detect_suspicious_patterns() is None
    assert governor.can_attempt_login("new@x.io") is True


def test_distributed_pattern_across_five_identities(clock) -> None:
    governor, log = make_governor(clock)
    for n in range(5):
        governor.record_failed_attempt(f"user{n}@x.io")
        clock.advance(seconds=30)

    assert governor.can_attempt_login("new@x.io") is False
    event = [e for e in log.entries() if e.type == DISTRIBUTED][-1]
    assert event.data["identities"] == [f"user{n}@x.io" for n in range(5)]
    assert event.data["window_seconds"] == 300

    # oldest failure leaves the five-minute window
    clock.advance(seconds=181)
    assert governor.can_attempt_login("new@x.io") is True


def test_pattern_is_logged_on_every_detection(clock) -> None:
    governor, log = make_governor(clock)
    for n in range(5):
        governor.record_failed_attempt(f"user{n}@x.io")

    for _ in range(3):
        assert governor.can_attempt_login("someone@x.io") is False

    assert len([e for e in log.entries() if e.type == DISTRIBUTED]) == 3


def test_pattern_overrides_clean_identity(clock) -> None:
    governor, _ = make_governor(clock)
    for n in range(5):
        governor.record_failed_attempt(f"user{n}@x.io")

    # user0 has a single failure and is nowhere near its own lockout
    assert governor.get_state("user0@x.io").is_blocked is False
    assert governor.can_attempt_login("user0@x.io") is False
