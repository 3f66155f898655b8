from .health import health_bp
from .guard import guard_bp
from .security_events import security_bp
