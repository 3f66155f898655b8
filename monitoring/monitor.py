"""
Behavior monitor: passive probes over input, navigation and resource
signals, mounted and unmounted together with the protected view.
"""
import logging
from datetime import datetime

from monitoring.config import MonitorThresholds
from monitoring.probes import MONITOR_MARKER, PROBES
from monitoring.runtime import Runtime
from utils.audit import BEHAVIOR_LOG_KEY, EventLog, Severity

logger = logging.getLogger(__name__)


def _noop_notify(type: str, message: str) -> None:
    return None


class BehaviorMonitor:
    def __init__(
        self,
        store,
        surface,
        runtime=None,
        scheduler=None,
        thresholds=None,
        notify=None,
        clock=None,
        capacity: int = 200,
    ):
        if isinstance(thresholds, MonitorThresholds):
            self.thresholds = thresholds
        else:
            self.thresholds = MonitorThresholds().merged(thresholds)

        self.surface = surface
        self.runtime = runtime or Runtime()
        self.scheduler = scheduler
        self.notify = notify or _noop_notify
        if clock is None:
            clock = getattr(scheduler, "clock", None) or datetime.utcnow
        self.clock = clock
        self.log = EventLog(store, BEHAVIOR_LOG_KEY, capacity, context=self.runtime.context, clock=clock)

        self._probes = []
        self._mounted = False

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def active_probes(self) -> list[str]:
        return [p.name for p in self._probes]

    def mount(self) -> None:
        if self._mounted:
            return
        for probe_cls in PROBES:
            probe = probe_cls(self)
            if not probe.enabled():
                continue
            try:
                probe.attach()
            except Exception:
                logger.warning("Probe %s could not be installed", probe.name, exc_info=True)
                probe.detach()
                continue
            self._probes.append(probe)
        self._mounted = True
        logger.info("Behavior monitor mounted with probes: %s", ", ".join(self.active_probes))

    def unmount(self) -> None:
        """Detach every listener, cancel every task and restore wrapped primitives."""
        while self._probes:
            self._probes.pop().detach()
        self._mounted = False

    def __enter__(self):
        self.mount()
        return self

    def __exit__(self, *exc):
        self.unmount()
        return False

    def log_security_event(self, type: str, severity, data=None):
        severity = Severity(severity)
        event = self.log.append(type, severity, data)

        console = self.runtime.console
        if console is not None:
            console.warn(f"{MONITOR_MARKER}: {type} ({severity.value})")

        if severity.notifies:
            self.notify(type, f"Security event detected: {type}")
        return event

    def get_security_events(self, hours_back: float = 24):
        return self.log.recent(hours_back)

    def clear_security_events(self) -> None:
        self.log.clear()

    def export_security_log(self) -> str:
        return self.log.export()

    def export_filename(self) -> str:
        return f"security-log-{self.clock().date().isoformat()}.json"
