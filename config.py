import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as loginguard.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "loginguard.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Admin API (security event listing, clearing, export); disabled when unset
    ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")

    # Where guard state lives: "sql" (durable) or "memory" (per process)
    GUARD_STORE = os.getenv("GUARD_STORE", "sql")

    # Brute-force protection
    GUARD_MAX_ATTEMPTS = int(os.getenv("GUARD_MAX_ATTEMPTS", "5"))
    GUARD_CHALLENGE_THRESHOLD = int(os.getenv("GUARD_CHALLENGE_THRESHOLD", "3"))
    GUARD_INITIAL_LOCKOUT_SECONDS = int(os.getenv("GUARD_INITIAL_LOCKOUT_SECONDS", "300"))  # 5 minutes
    GUARD_LOCKOUT_MULTIPLIER = int(os.getenv("GUARD_LOCKOUT_MULTIPLIER", "2"))

    # Cross-identity attack patterns
    GUARD_RAPID_FIRE_WINDOW_SECONDS = 60
    GUARD_RAPID_FIRE_THRESHOLD = 10
    GUARD_DISTRIBUTED_WINDOW_SECONDS = 300
    GUARD_DISTRIBUTED_THRESHOLD = 5

    # Rolling event logs
    SECURITY_LOGS_CAP = 100     # login events
    SECURITY_EVENTS_CAP = 200   # behavior events

    # Human verification challenge
    CHALLENGE_TTL_SECONDS = int(os.getenv("CHALLENGE_TTL_SECONDS", "300"))
    CHALLENGE_MAX_TRIES = int(os.getenv("CHALLENGE_MAX_TRIES", "3"))
    CHALLENGE_DIFFICULTY = os.getenv("CHALLENGE_DIFFICULTY", "medium")

    # Behavior monitor thresholds
    MONITOR_RAPID_CLICKS = 20           # clicks per 10 seconds
    MONITOR_RAPID_NAVIGATION = 10       # history pops per 30 seconds
    MONITOR_SUSPICIOUS_KEYSTROKES = 50  # keydowns per 5 seconds
    MONITOR_DEV_TOOLS_DETECTION = os.getenv("MONITOR_DEV_TOOLS_DETECTION", "true").lower() == "true"
    MONITOR_CONSOLE_INTERACTION = os.getenv("MONITOR_CONSOLE_INTERACTION", "true").lower() == "true"
    MONITOR_NETWORK_MONITORING = os.getenv("MONITOR_NETWORK_MONITORING", "true").lower() == "true"

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    GUARD_STORE = "memory"
    ADMIN_API_TOKEN = "test-admin-token"
