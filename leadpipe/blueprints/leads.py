"""Leads blueprint — /api/superadmin/leads/*

Superadmin sales CRM: lead list with filters, pipeline stats, lead CRUD,
activity log and business linking. JSON in, JSON out (camelCase keys).
All routes require a superadmin session. CSRF-exempt (JSON API, session
cookie is SameSite=Lax).

Route Map:
  GET    /api/superadmin/leads                      — Filtered, sorted, paginated list
  POST   /api/superadmin/leads                      — Create lead
  GET    /api/superadmin/leads/stats                — Pipeline stats (unfiltered)
  GET    /api/superadmin/leads/search-business      — Business lookup (?q= or ?email=)
  GET    /api/superadmin/leads/<id>                 — Lead detail + activity history
  PUT    /api/superadmin/leads/<id>                 — Partial update
  DELETE /api/superadmin/leads/<id>                 — Hard delete (cascades activities)
  POST   /api/superadmin/leads/<id>/activities      — Log an activity
  POST   /api/superadmin/leads/<id>/link            — Link to a business manually
  DELETE /api/superadmin/leads/<id>/link            — Remove the business link
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user
from sqlalchemy import func

from leadpipe.decorators import superadmin_required
from leadpipe.errors import ValidationError
from leadpipe.extensions import db
from leadpipe.models.business import Business
from leadpipe.models.lead import Lead
from leadpipe.models.team_member import TeamMember
from leadpipe.models.user import User
from leadpipe.services import conversion_service, lead_query, lead_service, stats_service
from leadpipe.services.ownership import owner_dict, resolve_owner
from leadpipe.services.utils import isoformat

leads_bp = Blueprint("leads", __name__, url_prefix="/api/superadmin/leads")

LIST_ACTIVITY_PREVIEW = 3


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


# ─── List / Create ───────────────────────────────────────────────

@leads_bp.route("", methods=["GET"])
@superadmin_required
def list_leads():
    filters = lead_query.LeadFilters.from_args(request.args)
    page = lead_query.list_leads(filters)

    status_counts = dict(
        db.session.query(Lead.status, func.count(Lead.id)).group_by(Lead.status).all()
    )
    source_counts = dict(
        db.session.query(Lead.source, func.count(Lead.id)).group_by(Lead.source).all()
    )

    return jsonify({
        "leads": [
            _lead_dict(lead, activities=lead_service.recent_activities(lead, LIST_ACTIVITY_PREVIEW))
            for lead in page.items
        ],
        "pagination": {
            "page": page.page,
            "limit": page.limit,
            "total": page.total,
            "pages": page.pages,
        },
        "stats": {
            "total": page.total,
            "byStatus": {k.lower(): v for k, v in status_counts.items()},
            "bySource": {k.lower(): v for k, v in source_counts.items()},
        },
        "teamMembers": _legacy_assignees(),
        "salesTeam": _sales_team(),
    })


@leads_bp.route("", methods=["POST"])
@superadmin_required
def create_lead():
    lead = lead_service.create_lead(_json_body(), actor=current_user)
    db.session.commit()
    return jsonify({"success": True, "lead": _lead_dict(lead)}), 201


# ─── Stats / Business search ─────────────────────────────────────

@leads_bp.route("/stats", methods=["GET"])
@superadmin_required
def lead_stats():
    return jsonify(stats_service.compute_lead_stats())


@leads_bp.route("/search-business", methods=["GET"])
@superadmin_required
def search_business():
    email = request.args.get("email")
    query = request.args.get("q")
    businesses, exact_match = conversion_service.search_businesses(query=query, email=email)
    return jsonify({
        "businesses": [_business_dict(b) for b in businesses],
        "exactMatch": exact_match,
    })


# ─── Single lead ─────────────────────────────────────────────────

@leads_bp.route("/<lead_id>", methods=["GET"])
@superadmin_required
def get_lead(lead_id):
    lead = lead_service.get_lead(lead_id)
    converted_business = None
    if lead.converted_to_id:
        business = db.session.get(Business, lead.converted_to_id)
        if business is not None:
            converted_business = _business_dict(business)
    return jsonify({
        "lead": _lead_dict(lead, activities=lead_service.recent_activities(lead)),
        "convertedBusiness": converted_business,
    })


@leads_bp.route("/<lead_id>", methods=["PUT"])
@superadmin_required
def update_lead(lead_id):
    lead = lead_service.update_lead(lead_id, _json_body(), actor=current_user)
    db.session.commit()
    return jsonify({
        "success": True,
        "lead": _lead_dict(lead, activities=lead_service.recent_activities(lead)),
    })


@leads_bp.route("/<lead_id>", methods=["DELETE"])
@superadmin_required
def delete_lead(lead_id):
    lead_service.delete_lead(lead_id)
    db.session.commit()
    return jsonify({"success": True, "message": "Lead deleted successfully"})


# ─── Activities ──────────────────────────────────────────────────

@leads_bp.route("/<lead_id>/activities", methods=["POST"])
@superadmin_required
def add_activity(lead_id):
    activity = lead_service.add_activity(lead_id, _json_body(), actor=current_user)
    db.session.commit()
    lead = db.session.get(Lead, lead_id)
    return jsonify({
        "success": True,
        "activity": _activity_dict(activity),
        "lead": _lead_dict(lead),
    }), 201


# ─── Business link ───────────────────────────────────────────────

@leads_bp.route("/<lead_id>/link", methods=["POST"])
@superadmin_required
def link_business(lead_id):
    data = _json_body()
    lead = conversion_service.link_manually(lead_id, data.get("businessId"))
    db.session.commit()
    return jsonify({"success": True, "lead": _lead_dict(lead)})


@leads_bp.route("/<lead_id>/link", methods=["DELETE"])
@superadmin_required
def unlink_business(lead_id):
    lead = conversion_service.unlink(lead_id)
    db.session.commit()
    return jsonify({"success": True, "lead": _lead_dict(lead)})


# ─── Helpers ─────────────────────────────────────────────────────

def _lead_dict(lead, activities=None):
    """Serialize a Lead to a JSON-safe dict (wire names)."""
    data = {
        "id": lead.id,
        "name": lead.name,
        "email": lead.email,
        "phone": lead.phone,
        "company": lead.company,
        "country": lead.country,
        "source": lead.source,
        "sourceDetail": lead.source_detail,
        "referredBy": lead.referred_by,
        "status": lead.status,
        "priority": lead.priority,
        "score": lead.score,
        "assignedToId": lead.assigned_to_id,
        "assignedTo": (
            {
                "id": lead.assigned_to.id,
                "name": lead.assigned_to.full_name,
                "email": lead.assigned_to.email,
            }
            if lead.assigned_to else None
        ),
        "teamMemberId": lead.team_member_id,
        "teamMember": (
            {
                "id": lead.team_member.id,
                "name": lead.team_member.name,
                "email": lead.team_member.email,
                "role": lead.team_member.role,
                "avatar": lead.team_member.avatar,
            }
            if lead.team_member else None
        ),
        "owner": owner_dict(resolve_owner(lead)),
        "assignedAt": isoformat(lead.assigned_at),
        "businessType": lead.business_type,
        "expectedPlan": lead.expected_plan,
        "estimatedValue": lead.estimated_value,
        "lastContactedAt": isoformat(lead.last_contacted_at),
        "nextFollowUpAt": isoformat(lead.next_follow_up_at),
        "contactCount": lead.contact_count,
        "isOverdue": lead_service.is_overdue(lead),
        "convertedAt": isoformat(lead.converted_at),
        "convertedToId": lead.converted_to_id,
        "convertedTo": lead.converted_to,
        "conversionNotes": lead.conversion_notes,
        "notes": lead.notes,
        "tags": lead.tags or [],
        "version": lead.version,
        "createdAt": isoformat(lead.created_at),
        "updatedAt": isoformat(lead.updated_at),
        "_count": {"activities": lead.activities.count()},
    }
    if activities is not None:
        data["activities"] = [_activity_dict(a) for a in activities]
    return data


def _activity_dict(activity):
    return {
        "id": activity.id,
        "leadId": activity.lead_id,
        "type": activity.type,
        "title": activity.title,
        "description": activity.description,
        "performedBy": activity.performed_by,
        "performedById": activity.performed_by_id,
        "metadata": activity.metadata_ or {},
        "createdAt": isoformat(activity.created_at),
    }


def _business_dict(business):
    return {
        "id": business.id,
        "name": business.name,
        "slug": business.slug,
        "email": business.email,
        "subscriptionPlan": business.subscription_plan,
        "createdAt": isoformat(business.created_at),
    }


def _sales_team():
    """Active sales team members for the assignment picker."""
    counts = dict(
        db.session.query(Lead.team_member_id, func.count(Lead.id))
        .filter(Lead.team_member_id.isnot(None))
        .group_by(Lead.team_member_id)
        .all()
    )
    members = (
        TeamMember.query
        .filter_by(is_active=True)
        .order_by(TeamMember.name.asc())
        .all()
    )
    return [
        {
            "id": m.id,
            "name": m.name,
            "email": m.email,
            "role": m.role,
            "avatar": m.avatar,
            "_count": {"assignedLeads": counts.get(m.id, 0)},
        }
        for m in members
    ]


def _legacy_assignees():
    """Superadmin users, kept for leads still assigned the old way."""
    counts = dict(
        db.session.query(Lead.assigned_to_id, func.count(Lead.id))
        .filter(Lead.assigned_to_id.isnot(None))
        .group_by(Lead.assigned_to_id)
        .all()
    )
    users = (
        User.query
        .filter_by(is_superadmin=True)
        .order_by(User.email.asc())
        .all()
    )
    return [
        {
            "id": u.id,
            "name": u.full_name,
            "email": u.email,
            "_count": {"assignedLeads": counts.get(u.id, 0)},
        }
        for u in users
    ]
