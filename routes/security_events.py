from flask import Blueprint, Response, jsonify, request

from security.admin_token import require_admin_token
from utils.guard_context import get_log

security_bp = Blueprint("security", __name__, url_prefix="/security")

LOG_NAMES = ("behavior", "login")


@security_bp.before_request
def _admin_only():
    return require_admin_token()


def _selected_log():
    which = request.args.get("log") or "behavior"
    if which not in LOG_NAMES:
        return None
    return get_log(which)


@security_bp.get("/events")
def list_events():
    log = _selected_log()
    if log is None:
        return jsonify(error="Unknown log", allowed=list(LOG_NAMES)), 400

    hours = request.args.get("hours", type=float)
    if hours is None:
        hours = 24
    if hours <= 0:
        return jsonify(error="hours must be positive"), 400

    events = log.recent(hours)

    severity = request.args.get("severity")
    if severity:
        events = [e for e in events if e.severity.value == severity]

    return jsonify([e.to_dict() for e in events]), 200


@security_bp.delete("/events")
def clear_events():
    log = _selected_log()
    if log is None:
        return jsonify(error="Unknown log", allowed=list(LOG_NAMES)), 400
    log.clear()
    return jsonify(message="Security events cleared"), 200


@security_bp.get("/export")
def export_events():
    log = _selected_log()
    if log is None:
        return jsonify(error="Unknown log", allowed=list(LOG_NAMES)), 400

    filename = f"security-log-{log.now().date().isoformat()}.json"
    return Response(
        log.export(),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
