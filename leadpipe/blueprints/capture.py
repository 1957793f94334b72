"""Lead capture blueprint — /api/leads/*

Public endpoint behind the storefront marketing site's contact and demo
forms. Each submission becomes a NEW lead (source WEBSITE, or DEMO_REQUEST
for demo forms) with a CREATED activity performed by "System".

When LEADS_CAPTURE_KEY is set, submissions must carry the same value as
`access_key`.

Route Map:
  POST    /api/leads/capture  — Accept a form submission, create a lead
  OPTIONS /api/leads/capture  — CORS preflight
"""

import hmac
import logging
import re

from flask import Blueprint, current_app, jsonify, make_response, request

from leadpipe.errors import ValidationError
from leadpipe.extensions import db, limiter
from leadpipe.services import lead_service

capture_bp = Blueprint("capture", __name__, url_prefix="/api/leads")

logger = logging.getLogger(__name__)

# Sanity check only, not RFC 5322
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

DEMO_SUBJECTS = ("demo", "demo_request")


def _cors_response(response):
    """Add CORS headers so cross-origin JS submissions work."""
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


def _client_ip():
    """First hop of X-Forwarded-For, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip.strip()
    return request.remote_addr


@capture_bp.route("/capture", methods=["OPTIONS"])
def capture_preflight():
    """Handle CORS preflight requests."""
    response = make_response("", 204)
    return _cors_response(response)


@capture_bp.route("/capture", methods=["POST"])
@limiter.limit("10 per hour")
def capture():
    """
    Accept a marketing-site form submission and store it as a lead.

    Accepts both JSON and standard HTML form POST.

    Required fields: name, email
    Optional fields: phone, company, country, message, subject,
                     landingPage, referredBy, access_key

    Returns: { ok: true, leadId } or { ok: false, error: "..." }
    """
    if request.is_json:
        data = request.get_json(silent=True) or {}
    else:
        data = request.form.to_dict()

    if not data:
        return _cors_response(jsonify(ok=False, error="Invalid request.")), 400

    # --- Access key (optional) ---
    expected_key = current_app.config.get("LEADS_CAPTURE_KEY")
    if expected_key:
        access_key = (data.get("access_key") or "").strip()
        if not hmac.compare_digest(access_key, expected_key):
            logger.warning(f"Lead capture rejected: bad access key from {_client_ip()}")
            return _cors_response(jsonify(ok=False, error="Invalid access key.")), 403

    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip()
    message = (data.get("message") or "").strip()
    subject = (data.get("subject") or "").strip().lower()

    # --- Validation ---
    errors = []
    if not name:
        errors.append("Name is required.")
    if len(name) > 200:
        errors.append("Name is too long.")
    if not email or not EMAIL_RE.match(email):
        errors.append("A valid email is required.")
    if len(message) > 5000:
        errors.append("Message is too long.")

    if errors:
        return _cors_response(jsonify(ok=False, error=" ".join(errors))), 422

    is_demo = subject in DEMO_SUBJECTS
    fields = {
        "name": name,
        "email": email.lower(),
        "phone": data.get("phone"),
        "company": data.get("company"),
        "country": data.get("country"),
        "notes": message,
        "referredBy": data.get("referredBy"),
        "source": "DEMO_REQUEST" if is_demo else "WEBSITE",
        "sourceDetail": subject or None,
        "priority": "HIGH" if is_demo else "MEDIUM",
        "ipAddress": _client_ip(),
        "userAgent": request.headers.get("User-Agent"),
        "landingPage": data.get("landingPage") or request.headers.get("Referer"),
    }

    try:
        lead = lead_service.create_lead(fields, actor=None)
    except ValidationError as e:
        db.session.rollback()
        return _cors_response(jsonify(ok=False, error=e.message)), 422
    db.session.commit()

    logger.info(f"Lead captured from {lead.source}: {name} <{email}>")

    return _cors_response(jsonify(ok=True, leadId=lead.id)), 201
