import logging

from flask import Flask
from config import Config
from routes import health_bp, guard_bp, security_bp

from models import db
from flask_migrate import Migrate
from utils.guard_context import init_guard


def create_app(config_object=Config, store=None, clock=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(guard_bp)
    app.register_blueprint(security_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Guard state store (durable SQL by default, memory for tests)
    init_guard(app, store=store, clock=clock)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Cache-Control"] = "no-store"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp


    register_cli(app)


    return app

#-------------------------
import click
from security.state import normalize_identity
from utils.guard_context import get_governor, get_log


def _identity_arg(ctx, param, value):
    try:
        return normalize_identity(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def register_cli(app):
    @app.cli.command("guard-init-db")
    def init_db():
        """Create the security_records table (without running migrations)."""
        db.create_all()
        click.echo("security_records ready")

    @app.cli.command("guard-status")
    @click.argument("identity", callback=_identity_arg)
    def guard_status(identity):
        """Show guard state for an identity."""
        governor = get_governor()
        state = governor.get_state(identity)
        click.echo(f"identity:           {identity}")
        click.echo(f"attempt_count:      {state.attempt_count}")
        click.echo(f"is_blocked:         {state.is_blocked}")
        click.echo(f"requires_challenge: {state.requires_challenge}")
        click.echo(f"lockout_level:      {state.lockout_level}")
        remaining = governor.format_time_remaining(identity)
        if remaining:
            click.echo(f"unlocks in:         {remaining}")

    @app.cli.command("guard-reset-level")
    @click.argument("identity", callback=_identity_arg)
    def guard_reset_level(identity):
        """Reset the progressive lockout level of an identity."""
        get_governor().reset_lockout_level(identity)
        click.echo(f"{identity} lockout level reset")

    @app.cli.command("guard-export")
    @click.option("--log", "which", type=click.Choice(["behavior", "login"]), default="login")
    def guard_export(which):
        """Print a security log as JSON."""
        click.echo(get_log(which).export())

    @app.cli.command("guard-clear-events")
    @click.option("--log", "which", type=click.Choice(["behavior", "login"]), default="behavior")
    def guard_clear_events(which):
        """Purge a security log."""
        get_log(which).clear()
        click.echo(f"{which} log cleared")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
