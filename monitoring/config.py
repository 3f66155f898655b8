from dataclasses import dataclass, fields, replace


@dataclass(frozen=True)
class MonitorThresholds:
    rapid_clicks: int = 20           # clicks per 10 seconds
    rapid_navigation: int = 10       # history pops per 30 seconds
    suspicious_keystrokes: int = 50  # keydowns per 5 seconds
    dev_tools_detection: bool = True
    console_interaction: bool = True
    network_monitoring: bool = True

    def merged(self, overrides=None) -> "MonitorThresholds":
        """Partial overrides on top of these values. A count <= 0 disables its probe."""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"unknown monitor thresholds: {', '.join(sorted(unknown))}")
        return replace(self, **overrides)

    @classmethod
    def from_config(cls, config) -> "MonitorThresholds":
        return cls(
            rapid_clicks=config.get("MONITOR_RAPID_CLICKS", 20),
            rapid_navigation=config.get("MONITOR_RAPID_NAVIGATION", 10),
            suspicious_keystrokes=config.get("MONITOR_SUSPICIOUS_KEYSTROKES", 50),
            dev_tools_detection=config.get("MONITOR_DEV_TOOLS_DETECTION", True),
            console_interaction=config.get("MONITOR_CONSOLE_INTERACTION", True),
            network_monitoring=config.get("MONITOR_NETWORK_MONITORING", True),
        )
