import hmac
from flask import request, jsonify, current_app

ADMIN_HEADER = "X-Admin-Token"

def require_admin_token():
    """
    Returns an error response unless the request carries the configured
    admin token. With no token configured the admin API is disabled.
    """
    expected = current_app.config.get("ADMIN_API_TOKEN")
    if not expected:
        return jsonify(error="Admin API disabled"), 403

    supplied = request.headers.get(ADMIN_HEADER)
    if not supplied or not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        return jsonify(error="Admin token required"), 403
    return None
