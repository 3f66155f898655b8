"""Primitives of the environment being watched, injected by the host."""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class Viewport:
    outer_width: int
    outer_height: int
    inner_width: int
    inner_height: int


@dataclass
class MemoryUsage:
    used: int      # bytes
    total: int
    limit: int


class LoggerConsole:
    """Console-shaped adapter over a stdlib logger."""

    def __init__(self, log: logging.Logger = None):
        self._log = log or logging.getLogger("console")

    def log(self, *args):
        self._log.info(" ".join(str(a) for a in args))

    def warn(self, *args):
        self._log.warning(" ".join(str(a) for a in args))

    def error(self, *args):
        self._log.error(" ".join(str(a) for a in args))


@dataclass
class Runtime:
    """
    Anything left as None is not available in this environment and the
    probes that depend on it are not installed.
    """
    console: Any = None
    fetch: Optional[Callable] = None
    viewport: Optional[Callable[[], Optional[Viewport]]] = None
    memory: Optional[Callable[[], Optional[MemoryUsage]]] = None
    user_agent: str = "unknown"
    url: str = "unknown"

    def context(self) -> dict:
        return {"user_agent": self.user_agent, "url": self.url}
