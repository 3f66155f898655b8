"""
Listener registry the host dispatches raw UI signals into
(click, keydown, popstate, visibilitychange, contextmenu, copy, paste).
"""
from collections import defaultdict
from dataclasses import dataclass, field


@dataclass
class Signal:
    kind: str
    data: dict = field(default_factory=dict)
    default_prevented: bool = False

    def prevent_default(self) -> None:
        self.default_prevented = True


class SignalSurface:
    def __init__(self):
        self._listeners = defaultdict(list)

    def add_listener(self, kind: str, handler) -> None:
        self._listeners[kind].append(handler)

    def remove_listener(self, kind: str, handler) -> None:
        handlers = self._listeners.get(kind)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._listeners[kind]

    def listener_count(self, kind: str = None) -> int:
        if kind is not None:
            return len(self._listeners.get(kind, ()))
        return sum(len(h) for h in self._listeners.values())

    def dispatch(self, kind: str, **data) -> Signal:
        signal = Signal(kind=kind, data=data)
        for handler in list(self._listeners.get(kind, ())):
            handler(signal)
        return signal
