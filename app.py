import logging

import click
from flask import Flask, g, jsonify, request
from flask_migrate import Migrate
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from models.user import User, avatar_initials
from routes import (
    audit_bp,
    auth_bp,
    columns_bp,
    dashboard_bp,
    departments_bp,
    health_bp,
    holidays_bp,
    leave_rules_bp,
    leaves_bp,
    tasks_bp,
    users_bp,
)
from security.csrf import require_csrf
from security.password import hash_password
from security.rbac import Role
from utils.auth_context import load_current_user

logger = logging.getLogger(__name__)

CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/health",
}


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    level = app.config.get("LOG_LEVEL", "INFO")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(departments_bp)
    app.register_blueprint(leaves_bp)
    app.register_blueprint(holidays_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(leave_rules_bp)
    app.register_blueprint(columns_bp)
    app.register_blueprint(tasks_bp)

    db.init_app(app)
    Migrate(app, db)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        if request.path in CSRF_EXEMPT_PATHS:
            return None
        # only cookie-authenticated requests carry ambient credentials
        if getattr(g, "user", None) is not None:
            return require_csrf()
        return None

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_error_handlers(app)
    register_cli(app)

    return app


def register_error_handlers(app):
    @app.errorhandler(IntegrityError)
    def _conflict(e):
        db.session.rollback()
        logger.info("Integrity error: %s", e.orig)
        return jsonify(error="Conflicts with existing data"), 409

    @app.errorhandler(HTTPException)
    def _http_error(e):
        return jsonify(error=e.description or e.name), e.code

    @app.errorhandler(Exception)
    def _unhandled(e):
        db.session.rollback()
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify(error="Internal server error"), 500


def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("username")
    @click.argument("email")
    @click.argument("name")
    @click.option("--role", default=Role.EMPLOYEE.value, show_default=True,
                  type=click.Choice([r.value for r in Role], case_sensitive=False))
    @click.password_option()
    def create_user(username, email, name, role, password):
        """Create an account (bootstrap the first super admin with this)."""
        email = email.strip().lower()
        if User.query.filter((User.username == username) | (User.email == email)).first():
            raise click.ClickException("Username or email already in use")

        user = User(
            username=username,
            email=email,
            name=name,
            role=Role.parse(role).value,
            password_hash=hash_password(password),
            avatar=avatar_initials(name),
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created {user.username} ({user.role})")

    @app.cli.command("set-role")
    @click.argument("username")
    @click.argument("role", type=click.Choice([r.value for r in Role], case_sensitive=False))
    def set_role(username, role):
        """Change the role of an existing account."""
        user = User.query.filter_by(username=username).first()
        if not user:
            raise click.ClickException("User not found")

        user.role = Role.parse(role).value
        db.session.commit()
        click.echo(f"{user.username} is now {user.role}")


if __name__ == "__main__":
    app = create_app()
    app.run(host="127.0.0.1", port=5002)
