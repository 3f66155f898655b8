from datetime import timedelta

from flask import current_app

from models.store import FallbackStore, MemoryStore, SqlStore
from monitoring import BehaviorMonitor, MonitorThresholds
from security.challenge import ChallengeService
from security.governor import AttemptGovernor, GuardPolicy
from utils.audit import BEHAVIOR_LOG_KEY, LOGIN_LOG_KEY, EventLog

EXTENSION = "loginguard"


def init_guard(app, store=None, clock=None):
    """
    Attach the guard's shared store (and optional clock override) to the app.
    Services are built per call from these so every operation reads fresh state.
    """
    if store is None:
        if app.config.get("GUARD_STORE", "sql") == "memory":
            store = MemoryStore()
        else:
            store = FallbackStore(SqlStore())
    app.extensions[EXTENSION] = {"store": store, "clock": clock}


def _ext():
    return current_app.extensions[EXTENSION]


def get_store():
    return _ext()["store"]


def get_log(which: str = "login") -> EventLog:
    cfg = current_app.config
    if which == "behavior":
        return EventLog(get_store(), BEHAVIOR_LOG_KEY, cfg.get("SECURITY_EVENTS_CAP", 200), clock=_ext()["clock"])
    if which == "login":
        return EventLog(get_store(), LOGIN_LOG_KEY, cfg.get("SECURITY_LOGS_CAP", 100), clock=_ext()["clock"])
    raise ValueError(f"unknown log: {which}")


def get_governor(notify=None) -> AttemptGovernor:
    return AttemptGovernor(
        get_store(),
        get_log("login"),
        policy=GuardPolicy.from_config(current_app.config),
        notify=notify,
        clock=_ext()["clock"],
    )


def get_challenges() -> ChallengeService:
    cfg = current_app.config
    return ChallengeService(
        get_store(),
        clock=_ext()["clock"],
        ttl=timedelta(seconds=cfg.get("CHALLENGE_TTL_SECONDS", 300)),
        max_tries=cfg.get("CHALLENGE_MAX_TRIES", 3),
    )


def get_monitor(surface, runtime=None, scheduler=None, notify=None) -> BehaviorMonitor:
    """Behavior monitor writing to the app's shared store with configured thresholds."""
    cfg = current_app.config
    return BehaviorMonitor(
        get_store(),
        surface,
        runtime=runtime,
        scheduler=scheduler,
        thresholds=MonitorThresholds.from_config(cfg),
        notify=notify,
        clock=_ext()["clock"],
        capacity=cfg.get("SECURITY_EVENTS_CAP", 200),
    )
