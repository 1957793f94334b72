"""Auth blueprint — /auth/*

JSON session login for the superadmin console. Accounts are provisioned
with `flask seed-superadmin`; there is no self-registration.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash

from leadpipe.extensions import limiter
from leadpipe.models.user import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
# POST /auth/login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("15 per minute")
def login():
    """Email + password login. Body: {email, password, remember?}."""
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").lower().strip()
    password = data.get("password") or ""
    remember = bool(data.get("remember"))

    if not email or not password:
        return jsonify(message="Email and password are required."), 400

    user = User.query.filter_by(email=email).first()

    if user is None or not check_password_hash(user.password_hash, password):
        logger.info(f"Failed login attempt for {email}")
        return jsonify(message="Invalid email or password."), 401

    if not user.is_active:
        return jsonify(message="Your account has been deactivated."), 403

    login_user(user, remember=remember)
    return jsonify(success=True, user=_user_dict(user))


# ──────────────────────────────────────────────
# POST /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
def logout():
    logout_user()
    return jsonify(success=True)


# ──────────────────────────────────────────────
# GET /auth/me
# ──────────────────────────────────────────────

@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(user=_user_dict(current_user))


def _user_dict(user):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.full_name,
        "isSuperadmin": bool(user.is_superadmin),
    }
