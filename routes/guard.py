from flask import Blueprint, request, jsonify, current_app

from security.challenge import DIFFICULTIES
from security.state import normalize_identity
from utils.guard_context import get_challenges, get_governor


guard_bp = Blueprint("guard", __name__, url_prefix="/guard")


def _identity_from(data) -> str:
    """Normalized identity, or "" when missing, blank or too long."""
    try:
        return normalize_identity(data.get("identity") or data.get("email") or "")
    except ValueError:
        return ""


def _state_payload(governor, identity: str) -> dict:
    state = governor.get_state(identity)
    remaining = governor.get_time_remaining(identity)
    return {
        "identity": identity,
        "attempt_count": state.attempt_count,
        "is_blocked": state.is_blocked,
        "block_until": state.block_until.isoformat() if state.block_until else None,
        "requires_challenge": state.requires_challenge,
        "lockout_level": state.lockout_level,
        "retry_after_seconds": int(remaining.total_seconds()),
        "time_remaining": governor.format_time_remaining(identity),
    }


@guard_bp.post("/check")
def check():
    """Called by the login flow before credentials are submitted."""
    data = request.get_json(silent=True) or {}
    identity = _identity_from(data)
    if not identity:
        return jsonify(error="Invalid identity"), 400

    governor = get_governor()
    if not governor.can_attempt_login(identity):
        payload = _state_payload(governor, identity)
        return jsonify(
            error="Login temporarily blocked due to security measures.",
            allowed=False,
            **{k: payload[k] for k in ("requires_challenge", "retry_after_seconds", "time_remaining")},
        ), 429

    state = governor.get_state(identity)
    if state.requires_challenge:
        token = data.get("challenge_token")
        answer = data.get("challenge_answer")
        if not token or answer is None or not get_challenges().verify(token, answer):
            return jsonify(
                error="Verification challenge required",
                allowed=False,
                requires_challenge=True,
            ), 403

    return jsonify(allowed=True, requires_challenge=state.requires_challenge), 200


@guard_bp.post("/failure")
def failure():
    data = request.get_json(silent=True) or {}
    identity = _identity_from(data)
    if not identity:
        return jsonify(error="Invalid identity"), 400

    outcome = get_governor().record_failed_attempt(identity)
    return jsonify(
        attempt_count=outcome.attempt_count,
        remaining_attempts=outcome.remaining_attempts,
        requires_challenge=outcome.requires_challenge,
        locked=outcome.locked,
        lockout_seconds=int(outcome.lockout_duration.total_seconds()) if outcome.lockout_duration else None,
        message=outcome.message,
    ), 200


@guard_bp.post("/success")
def success():
    data = request.get_json(silent=True) or {}
    identity = _identity_from(data)
    if not identity:
        return jsonify(error="Invalid identity"), 400

    get_governor().record_successful_login(identity)
    return jsonify(message="Guard state cleared"), 200


@guard_bp.get("/status")
def status():
    identity = _identity_from(request.args)
    if not identity:
        return jsonify(error="Invalid identity"), 400
    return jsonify(_state_payload(get_governor(), identity)), 200


@guard_bp.post("/challenge")
def issue_challenge():
    data = request.get_json(silent=True) or {}
    difficulty = data.get("difficulty") or current_app.config.get("CHALLENGE_DIFFICULTY", "medium")
    if difficulty not in DIFFICULTIES:
        return jsonify(error="Invalid difficulty", allowed=list(DIFFICULTIES)), 400

    challenge = get_challenges().issue(difficulty)
    return jsonify(
        token=challenge.token,
        question=challenge.question,
        expires_at=challenge.expires_at.isoformat(),
    ), 201


@guard_bp.post("/challenge/verify")
def verify_challenge():
    data = request.get_json(silent=True) or {}
    token = data.get("token") or ""
    answer = data.get("answer")
    if not token or answer is None:
        return jsonify(error="token and answer are required"), 400

    if not get_challenges().verify(token, answer):
        return jsonify(verified=False, error="Incorrect or expired challenge"), 400
    return jsonify(verified=True), 200
