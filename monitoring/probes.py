"""
Behavior probes. Each one maps raw signals to severity-tagged events and
keeps the cleanups for everything it attached, so `detach` leaves nothing
behind.
"""
import logging
import math
from datetime import timedelta

from monitoring.instrument import wrap_attribute
from monitoring.windows import SlidingWindow
from utils.audit import Severity

logger = logging.getLogger(__name__)

MONITOR_MARKER = "SECURITY EVENT"
DEVTOOLS_GAP_PX = 160
DEVTOOLS_POLL = timedelta(milliseconds=500)
MEMORY_POLL = timedelta(seconds=30)
MEMORY_LIMIT_MB = 500
RAPID_FOCUS = timedelta(milliseconds=100)
MAX_URL_LENGTH = 100
DEVTOOLS_CHORD_KEYS = ("I", "J", "C")


def _mb(num_bytes) -> int:
    return round(num_bytes / 1048576)


def _args_preview(args) -> list:
    return [str(a) for a in args[:3]]


class Probe:
    name = "probe"

    def __init__(self, monitor):
        self.monitor = monitor
        self._cleanups = []

    def enabled(self) -> bool:
        return True

    def attach(self) -> None:
        raise NotImplementedError

    def detach(self) -> None:
        while self._cleanups:
            self._cleanups.pop()()

    def emit(self, type, severity, data=None):
        return self.monitor.log_security_event(type, severity, data or {})

    def now(self):
        return self.monitor.clock()

    def listen(self, kind, handler) -> None:
        surface = self.monitor.surface
        surface.add_listener(kind, handler)
        self._cleanups.append(lambda: surface.remove_listener(kind, handler))

    def every(self, interval, callback) -> None:
        def tick():
            try:
                callback()
            except Exception:
                logger.warning("Probe %s poll failed", self.name, exc_info=True)

        handle = self.monitor.scheduler.every(interval, tick)
        self._cleanups.append(handle.cancel)


class DevToolsProbe(Probe):
    """Edge-triggered: one event when the viewport gap opens, one when it closes."""
    name = "devtools"

    def __init__(self, monitor):
        super().__init__(monitor)
        self.is_open = False

    def enabled(self) -> bool:
        m = self.monitor
        return m.thresholds.dev_tools_detection and m.runtime.viewport is not None and m.scheduler is not None

    def attach(self) -> None:
        self.is_open = False
        self.every(DEVTOOLS_POLL, self.check)

    def check(self) -> None:
        vp = self.monitor.runtime.viewport()
        if vp is None:
            return
        wide = vp.outer_width - vp.inner_width > DEVTOOLS_GAP_PX
        tall = vp.outer_height - vp.inner_height > DEVTOOLS_GAP_PX

        if (wide or tall) and not self.is_open:
            self.is_open = True
            self.emit("developer_tools_opened", Severity.MEDIUM, {
                "outer_dimensions": {"width": vp.outer_width, "height": vp.outer_height},
                "inner_dimensions": {"width": vp.inner_width, "height": vp.inner_height},
            })
            console = self.monitor.runtime.console
            if console is not None:
                console.warn(f"{MONITOR_MARKER}: monitoring active, developer tools usage is logged.")
        elif not wide and not tall and self.is_open:
            self.is_open = False
            self.emit("developer_tools_closed", Severity.LOW)


class ConsoleProbe(Probe):
    name = "console"

    def enabled(self) -> bool:
        return self.monitor.thresholds.console_interaction and self.monitor.runtime.console is not None

    def attach(self) -> None:
        console = self.monitor.runtime.console
        self._cleanups.append(wrap_attribute(console, "log", before=self._on_log))
        self._cleanups.append(wrap_attribute(console, "error", before=self._on_error))
        self._cleanups.append(wrap_attribute(console, "warn", before=self._on_warn))

    def _on_log(self, args, kwargs):
        self.emit("console_log_usage", Severity.LOW, {"args": _args_preview(args)})

    def _on_error(self, args, kwargs):
        self.emit("console_error_usage", Severity.MEDIUM, {"args": _args_preview(args)})

    def _on_warn(self, args, kwargs):
        # Our own echo lines go through warn too
        if args and str(args[0]).startswith(MONITOR_MARKER):
            return
        self.emit("console_warn_usage", Severity.LOW, {"args": _args_preview(args)})


class _BurstProbe(Probe):
    """Sliding-window counter that trips once the count passes a threshold, then starts over."""
    signal = ""
    span = timedelta(0)
    event = ""
    severity = Severity.MEDIUM
    count_field = ""

    def threshold(self) -> int:
        raise NotImplementedError

    def enabled(self) -> bool:
        return self.threshold() > 0

    def attach(self) -> None:
        self.window = SlidingWindow(self.span, self.threshold() + 1)
        self.listen(self.signal, self.handle)

    def handle(self, signal) -> None:
        count = self.window.hit(self.now())
        if count > self.threshold():
            data = {self.count_field: count, "threshold": self.threshold()}
            data.update(self.details(signal))
            self.emit(self.event, self.severity, data)
            self.window.reset()

    def details(self, signal) -> dict:
        return {}


class RapidClickProbe(_BurstProbe):
    name = "rapid_click"
    signal = "click"
    span = timedelta(seconds=10)
    event = "rapid_clicking_detected"
    count_field = "clicks_in_period"

    def threshold(self) -> int:
        return self.monitor.thresholds.rapid_clicks


class KeystrokeProbe(_BurstProbe):
    name = "keystroke"
    signal = "keydown"
    span = timedelta(seconds=5)
    event = "suspicious_keystroke_pattern"
    severity = Severity.HIGH
    count_field = "keystrokes_in_period"

    def threshold(self) -> int:
        return self.monitor.thresholds.suspicious_keystrokes

    def details(self, signal) -> dict:
        return {"last_key": signal.data.get("key")}

    def handle(self, signal) -> None:
        super().handle(signal)
        data = signal.data
        if data.get("ctrl") and data.get("shift") and data.get("key") in DEVTOOLS_CHORD_KEYS:
            self.emit("developer_shortcut_usage", Severity.LOW, {"key": data.get("key")})


class NavigationProbe(_BurstProbe):
    name = "navigation"
    signal = "popstate"
    span = timedelta(seconds=30)
    event = "rapid_navigation_detected"
    count_field = "navigation_in_period"

    def threshold(self) -> int:
        return self.monitor.thresholds.rapid_navigation


class FocusProbe(Probe):
    name = "focus"

    def attach(self) -> None:
        self.last_change = self.now()
        self.listen("visibilitychange", self.handle)

    def handle(self, signal) -> None:
        now = self.now()
        hidden = bool(signal.data.get("hidden"))
        since_last = now - self.last_change

        if since_last < RAPID_FOCUS:
            self.emit("rapid_focus_changes", Severity.MEDIUM, {
                "is_hidden": hidden,
                "time_since_last_change_ms": int(since_last.total_seconds() * 1000),
            })
        self.last_change = now

        kind = "window_lost_focus" if hidden else "window_gained_focus"
        self.emit(kind, Severity.LOW, {"timestamp": now.isoformat()})


class ContextMenuProbe(Probe):
    name = "context_menu"

    def attach(self) -> None:
        self.listen("contextmenu", self.handle)

    def handle(self, signal) -> None:
        self.emit("context_menu_attempt", Severity.LOW, {
            "x": signal.data.get("x"),
            "y": signal.data.get("y"),
            "target": signal.data.get("target"),
        })
        signal.prevent_default()


class ClipboardProbe(Probe):
    name = "clipboard"

    def attach(self) -> None:
        self.listen("copy", lambda s: self._emit("clipboard_copy"))
        self.listen("paste", lambda s: self._emit("clipboard_paste"))

    def _emit(self, kind) -> None:
        self.emit(kind, Severity.LOW, {"timestamp": self.now().isoformat()})


class NetworkProbe(Probe):
    name = "network"

    def enabled(self) -> bool:
        return self.monitor.thresholds.network_monitoring and self.monitor.runtime.fetch is not None

    def attach(self) -> None:
        restore = wrap_attribute(self.monitor.runtime, "fetch", after=self._done, failed=self._failed)
        self._cleanups.append(restore)

    @staticmethod
    def _request(args, kwargs) -> tuple[str, str]:
        url = str(args[0]) if args else str(kwargs.get("url", "unknown"))
        method = kwargs.get("method") or (args[1] if len(args) > 1 else "GET")
        return url[:MAX_URL_LENGTH], str(method).upper()

    def _done(self, args, kwargs, response, elapsed) -> None:
        url, method = self._request(args, kwargs)
        status = getattr(response, "status", None)
        if status is None:
            status = getattr(response, "status_code", None)
        self.emit("network_request", Severity.LOW, {
            "url": url,
            "method": method,
            "status": status,
            "duration_ms": math.floor(elapsed * 1000),
        })

    def _failed(self, args, kwargs, exc, elapsed) -> None:
        url, method = self._request(args, kwargs)
        self.emit("network_request_failed", Severity.MEDIUM, {
            "url": url,
            "method": method,
            "error": str(exc),
            "duration_ms": math.floor(elapsed * 1000),
        })


class MemoryProbe(Probe):
    name = "memory"

    def enabled(self) -> bool:
        return self.monitor.runtime.memory is not None and self.monitor.scheduler is not None

    def attach(self) -> None:
        self.every(MEMORY_POLL, self.check)

    def check(self) -> None:
        usage = self.monitor.runtime.memory()
        if usage is None:
            return
        used_mb = _mb(usage.used)
        if used_mb > MEMORY_LIMIT_MB:
            self.emit("high_memory_usage", Severity.MEDIUM, {
                "used_mb": used_mb,
                "total_mb": _mb(usage.total),
                "limit_mb": _mb(usage.limit),
            })


PROBES = (
    DevToolsProbe,
    ConsoleProbe,
    RapidClickProbe,
    KeystrokeProbe,
    NavigationProbe,
    FocusProbe,
    ContextMenuProbe,
    ClipboardProbe,
    NetworkProbe,
    MemoryProbe,
)
