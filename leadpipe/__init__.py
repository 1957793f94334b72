import os
import logging

import click
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.security import generate_password_hash

from leadpipe.config import config_by_name
from leadpipe.errors import LeadPipelineError
from leadpipe.extensions import db, migrate, login_manager, csrf, limiter

logger = logging.getLogger(__name__)


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from leadpipe import models  # noqa: F401

    # --- Register blueprints ---
    from leadpipe.blueprints.auth import auth_bp
    from leadpipe.blueprints.leads import leads_bp
    from leadpipe.blueprints.capture import capture_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(capture_bp)

    # JSON APIs: session cookie is SameSite=Lax, no form posts
    csrf.exempt(auth_bp)
    csrf.exempt(leads_bp)
    # Public API hit by the marketing site
    csrf.exempt(capture_bp)

    # --- Error handlers ---
    register_error_handlers(app)

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # Permissions Policy (restrict browser features)
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=(), payment=()"
        )
        # API only: nothing to load, nothing to frame
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none';"
        )
        # Lead data is per-operator; never cache it in shared caches
        if response.mimetype == "application/json":
            response.headers["Cache-Control"] = "no-store"
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_error_handlers(app):
    """JSON error bodies for every failure the API can produce."""

    @app.errorhandler(LeadPipelineError)
    def pipeline_error(e):
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        db.session.rollback()
        logger.error(f"Database error: {e}")
        return jsonify(message="A database error occurred."), 500

    @app.errorhandler(HTTPException)
    def http_error(e):
        messages = {
            401: "Unauthorized",
            403: "Forbidden",
            404: "Not found",
            405: "Method not allowed",
            429: "Too many requests. Please try again later.",
        }
        return jsonify(message=messages.get(e.code, e.description)), e.code

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        return jsonify(message="Internal server error"), 500


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-superadmin")
    @click.option("--email", default="admin@leadpipe.local", help="Superadmin email")
    @click.option("--password", default="admin123", help="Superadmin password")
    @click.option("--name", default="Admin", help="Display name")
    def seed_superadmin(email, password, name):
        """Create (or promote) a superadmin user.

        Usage:
            flask seed-superadmin
            flask seed-superadmin --email ops@example.com --password s3cret
        """
        from leadpipe.models.user import User

        email = email.lower().strip()
        user = User.query.filter_by(email=email).first()
        if user:
            user.is_superadmin = True
            click.echo(f"User already exists, promoted to superadmin: {email}")
        else:
            user = User(
                email=email,
                password_hash=generate_password_hash(password),
                full_name=name,
                is_superadmin=True,
            )
            db.session.add(user)
            click.echo(f"Created superadmin: {email}")
        db.session.commit()

    @app.cli.command("seed-demo-leads")
    @click.option("--count", default=12, help="Number of demo leads to create")
    def seed_demo_leads(count):
        """Create a sales team, a few businesses and demo leads across the funnel.

        Usage:
            flask seed-demo-leads
            flask seed-demo-leads --count 40
        """
        import random
        from datetime import timedelta

        from leadpipe.models.business import Business
        from leadpipe.models.lead import Lead
        from leadpipe.models.team_member import TeamMember
        from leadpipe.services import lead_service
        from leadpipe.services.utils import utcnow

        # --- 1. Sales team ---
        team = []
        for name, email, role in [
            ("Sara Ops", "sara@leadpipe.local", "SALES_MANAGER"),
            ("Omar Rep", "omar@leadpipe.local", "SALES_REP"),
        ]:
            member = TeamMember.query.filter_by(email=email).first()
            if member is None:
                member = TeamMember(name=name, email=email, role=role)
                db.session.add(member)
            team.append(member)

        # --- 2. Storefront businesses ---
        for name, slug, plan in [
            ("Demo Bakery", "demo-bakery", "STARTER"),
            ("Demo Boutique", "demo-boutique", "PRO"),
        ]:
            if Business.query.filter_by(slug=slug).first() is None:
                db.session.add(Business(
                    name=name, slug=slug, email=f"hello@{slug}.test",
                    subscription_plan=plan,
                ))
        db.session.flush()

        # --- 3. Leads ---
        now = utcnow()
        rng = random.Random(42)
        for i in range(count):
            status = Lead.STATUSES[i % len(Lead.STATUSES)]
            fields = {
                "name": f"Demo Lead {i + 1}",
                "email": f"lead{i + 1}@example.test",
                "company": f"Shop {i + 1}",
                "source": rng.choice(Lead.SOURCES),
                "priority": rng.choice(Lead.PRIORITIES),
                "score": rng.randint(0, 100),
                "estimatedValue": rng.choice([None, 29.0, 79.0, 199.0]),
                "nextFollowUpAt": (now + timedelta(days=rng.randint(-5, 10))).isoformat(),
            }
            if i % 3:
                fields["teamMemberId"] = team[i % len(team)].id
            lead = lead_service.create_lead(fields, actor=None, now=now - timedelta(days=i))
            if status != "NEW":
                lead_service.update_lead(lead.id, {"status": status}, actor=None, now=now)

        db.session.commit()

        click.echo("")
        click.echo("=" * 60)
        click.echo("Demo leads created successfully!")
        click.echo("=" * 60)
        click.echo(f"  Team members: {len(team)}")
        click.echo(f"  Leads:        {count}")
        click.echo(f"  Total leads:  {Lead.query.count()}")
        click.echo("=" * 60)
