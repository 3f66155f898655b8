from .config import MonitorThresholds
from .monitor import BehaviorMonitor
from .runtime import LoggerConsole, MemoryUsage, Runtime, Viewport
from .scheduler import AsyncioScheduler, ManualScheduler, Scheduler, TaskHandle
from .surface import Signal, SignalSurface
from .windows import SlidingWindow
