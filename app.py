import logging

import click
from flask import Flask, request, g, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from models.user import User, Role
from routes import health_bp, auth_bp, room_bp, booking_bp, schedule_bp, audit_bp
from security.csrf import csrf_protect
from security.password import hash_password
from security.rbac import ADMIN
from security.session import load_current_user
from utils.seed import seed_roles


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    app.logger.setLevel(level)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(room_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(schedule_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        # Seed default roles at startup (idempotent)
        seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        return csrf_protect(getattr(g, "user", None))

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify(error=exc.description), exc.code

    @app.errorhandler(Exception)
    def _unhandled(exc):
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify(error="Internal server error"), 500

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("seed-roles")
    def seed_roles_command():
        """Create the default MEMBER/ADMIN roles."""
        created = seed_roles()
        click.echo(f"{created} role(s) created")

    @app.cli.command("make-admin")
    @click.argument("email")
    @click.option("--password", default=None, help="Create the user with this password if missing.")
    def make_admin(email, password):
        """Promote a user to ADMIN by email (bootstrap)."""
        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if not user:
            if not password:
                click.echo("User not found")
                return
            user = User(email=email, password_hash=hash_password(password))
            db.session.add(user)

        admin_role = Role.query.filter_by(name=ADMIN).first()
        if not admin_role:
            admin_role = Role(name=ADMIN)
            db.session.add(admin_role)

        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
