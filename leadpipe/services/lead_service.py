"""Lead service — create, update, delete, activity log, follow-up rules.

The lead state machine:
- Any status may move to any other. Every real change of status writes a
  STATUS_CHANGE activity; every real change of owner writes an ASSIGNED
  activity. Payloads that change nothing write nothing.
- A lead that is not WON never keeps a business link. Conversion fields
  sent with a non-WON status are cleared rather than rejected.
- Moving into WON without a link tries the conversion service's exact
  email auto-match.
- contact_count only goes up: contact-type activities and a supplied
  lastContactedAt each add one.

Payloads use the wire (camelCase) field names. Everything is validated
before anything is applied, so a rejected payload leaves the lead as it was.

Functions flush but do NOT commit — the caller commits.
"""

import logging

from leadpipe.errors import ConflictError, NotFoundError, ValidationError
from leadpipe.extensions import db
from leadpipe.models.business import Business
from leadpipe.models.lead import Lead
from leadpipe.models.lead_activity import LeadActivity
from leadpipe.models.team_member import TeamMember
from leadpipe.models.user import User
from leadpipe.services import conversion_service
from leadpipe.services.ownership import is_unassigned
from leadpipe.services.utils import (
    as_utc,
    normalize_tags,
    parse_choice,
    parse_datetime,
    parse_float,
    parse_int,
    sanitize,
    utcnow,
)

logger = logging.getLogger(__name__)

ACTIVITY_HISTORY_LIMIT = 50

# wire name -> column, for plain optional text fields
TEXT_FIELDS = {
    "email": "email",
    "phone": "phone",
    "company": "company",
    "country": "country",
    "sourceDetail": "source_detail",
    "referredBy": "referred_by",
    "businessType": "business_type",
    "expectedPlan": "expected_plan",
    "notes": "notes",
    "conversionNotes": "conversion_notes",
}

CAPTURE_FIELDS = {
    "ipAddress": "ip_address",
    "userAgent": "user_agent",
    "landingPage": "landing_page",
}


def actor_label(actor):
    """Human label for `performed_by`."""
    if actor is None:
        return "System"
    return getattr(actor, "display_name", None) or getattr(actor, "email", None) or "Unknown"


def is_overdue(lead, now=None):
    """True when the next follow-up has passed and the lead is still open.

    WON and LOST leads are never overdue, however old their follow-up date.
    """
    if lead.status in Lead.TERMINAL_STATUSES:
        return False
    follow_up = as_utc(lead.next_follow_up_at)
    if follow_up is None:
        return False
    return follow_up < (now or utcnow())


def get_lead(lead_id):
    """Load a lead or raise NotFoundError."""
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead", lead_id)
    return lead


def recent_activities(lead, limit=ACTIVITY_HISTORY_LIMIT):
    """Newest-first activity history of a lead."""
    return lead.activities.limit(limit).all()


def create_lead(fields, actor=None, now=None):
    """Create a lead and its CREATED activity.

    Args:
        fields: Wire payload. `name` is required; status defaults to NEW,
            priority to MEDIUM, source to OTHER.
        actor: The User performing the action (None for system captures).

    Returns:
        The created Lead.

    Raises:
        ValidationError: If name is blank or a value is malformed.
    """
    fields = fields or {}
    now = now or utcnow()

    name = _column_text(fields.get("name"), "name", "name")
    if not name:
        raise ValidationError("Name is required.", field="name")

    values = {
        "name": name,
        "source": parse_choice(fields.get("source"), Lead.SOURCES, "source", default="OTHER"),
        "status": parse_choice(fields.get("status"), Lead.STATUSES, "status", default="NEW"),
        "priority": parse_choice(fields.get("priority"), Lead.PRIORITIES, "priority", default="MEDIUM"),
        "score": parse_int(fields.get("score"), "score", default=0),
        "estimated_value": parse_float(fields.get("estimatedValue"), "estimatedValue"),
        "next_follow_up_at": parse_datetime(fields.get("nextFollowUpAt"), "nextFollowUpAt"),
        "tags": normalize_tags(fields.get("tags")),
    }
    for key, attr in TEXT_FIELDS.items():
        values[attr] = _column_text(fields.get(key), attr, key)
    for key, attr in CAPTURE_FIELDS.items():
        values[attr] = _clip(sanitize(fields.get(key)), attr)

    team_member = _load_team_member(fields.get("teamMemberId"))
    assigned_user = _load_user(fields.get("assignedToId"))

    lead = Lead(**values)
    lead.team_member = team_member
    lead.assigned_to = assigned_user
    lead.assigned_at = now if (team_member or assigned_user) else None
    lead.contact_count = 0
    lead.version = 1
    lead.created_at = now
    db.session.add(lead)
    db.session.flush()

    label = actor_label(actor)
    _log_system_activity(
        lead,
        "CREATED",
        title="Lead created",
        description=f'Lead "{lead.name}" was created by {label}',
        actor=actor,
        now=now,
    )

    if lead.status == "WON":
        conversion_service.auto_match_by_email(lead, now=now)

    db.session.flush()
    logger.info(f"Lead {lead.id} created ({lead.source}) by {label}")
    return lead


def update_lead(lead_id, fields, actor=None, now=None):
    """Apply a partial update to a lead.

    Args:
        lead_id: Lead UUID string.
        fields: Wire payload; only keys present are touched. An optional
            `version` makes the write fail if the lead changed since it
            was read.
        actor: The User performing the action.

    Returns:
        The updated Lead.

    Raises:
        NotFoundError: If the lead does not exist.
        ValidationError: If a value is malformed or a referenced team
            member / user / business does not exist.
        ConflictError: If `version` is stale.
    """
    fields = fields or {}
    now = now or utcnow()
    lead = get_lead(lead_id)

    if fields.get("version") not in (None, ""):
        expected = parse_int(fields.get("version"), "version")
        if expected != lead.version:
            raise ConflictError(
                f"Lead {lead_id} was modified by someone else "
                f"(version {lead.version}, expected {expected}). Reload and retry.",
                field="version",
            )

    # --- Validate everything first ---
    updates = {}

    if "name" in fields:
        name = _column_text(fields.get("name"), "name", "name")
        if not name:
            raise ValidationError("Name is required.", field="name")
        updates["name"] = name
    if fields.get("source"):
        updates["source"] = parse_choice(fields["source"], Lead.SOURCES, "source")
    if fields.get("priority"):
        updates["priority"] = parse_choice(fields["priority"], Lead.PRIORITIES, "priority")
    if "score" in fields:
        updates["score"] = parse_int(fields.get("score"), "score", default=0)
    if "estimatedValue" in fields:
        updates["estimated_value"] = parse_float(fields.get("estimatedValue"), "estimatedValue")
    if "nextFollowUpAt" in fields:
        updates["next_follow_up_at"] = parse_datetime(fields.get("nextFollowUpAt"), "nextFollowUpAt")
    if "tags" in fields:
        updates["tags"] = normalize_tags(fields.get("tags"))
    for key, attr in TEXT_FIELDS.items():
        if key in fields:
            updates[attr] = _column_text(fields.get(key), attr, key)

    new_status = None
    if fields.get("status"):
        new_status = parse_choice(fields["status"], Lead.STATUSES, "status")

    team_member_change = None
    if "teamMemberId" in fields:
        team_member_change = (_load_team_member(fields.get("teamMemberId")),)

    assigned_user_change = None
    if "assignedToId" in fields:
        assigned_user_change = (_load_user(fields.get("assignedToId")),)

    link_target = None
    if fields.get("convertedToId"):
        link_target = db.session.get(Business, fields["convertedToId"])
        if link_target is None:
            raise ValidationError(
                f"Business {fields['convertedToId']} not found.", field="convertedToId"
            )

    last_contacted_at = None
    if fields.get("lastContactedAt"):
        last_contacted_at = parse_datetime(fields["lastContactedAt"], "lastContactedAt")

    # --- Apply ---
    changed = False
    pending = []  # (type, title, description, metadata)

    for attr, value in updates.items():
        if _differs(getattr(lead, attr), value):
            setattr(lead, attr, value)
            changed = True

    old_status = lead.status
    if new_status and new_status != old_status:
        lead.status = new_status
        changed = True
        pending.append((
            "STATUS_CHANGE",
            f"Status changed to {new_status}",
            f"Status changed from {old_status} to {new_status}",
            {"oldStatus": old_status, "newStatus": new_status},
        ))

    owner_changed = False
    if team_member_change is not None:
        member = team_member_change[0]
        new_id = member.id if member else None
        if new_id != lead.team_member_id:
            old_id = lead.team_member_id
            lead.team_member = member
            owner_changed = True
            pending.append(_assignment_entry(
                "team_member", old_id, new_id, member.name if member else None
            ))

    if assigned_user_change is not None:
        user = assigned_user_change[0]
        new_id = user.id if user else None
        if new_id != lead.assigned_to_id:
            old_id = lead.assigned_to_id
            lead.assigned_to = user
            owner_changed = True
            pending.append(_assignment_entry(
                "user", old_id, new_id, user.display_name if user else None
            ))

    if owner_changed:
        changed = True
        db.session.flush()
        lead.assigned_at = None if is_unassigned(lead) else now

    if last_contacted_at is not None:
        lead.last_contacted_at = last_contacted_at
        lead.contact_count = (lead.contact_count or 0) + 1
        changed = True

    if _apply_conversion_rules(lead, old_status, fields, link_target, now):
        changed = True

    if changed:
        lead.version = (lead.version or 0) + 1
        lead.updated_at = now
    db.session.flush()

    for activity_type, title, description, metadata in pending:
        _log_system_activity(
            lead, activity_type, title=title, description=description,
            actor=actor, metadata=metadata, now=now,
        )
    db.session.flush()

    return lead


def delete_lead(lead_id):
    """Hard-delete a lead and all of its activities. There is no undo."""
    lead = get_lead(lead_id)
    name = lead.name
    db.session.delete(lead)
    db.session.flush()
    logger.info(f"Lead {lead_id} ({name}) deleted")


def add_activity(lead_id, fields, actor=None, now=None):
    """Log an operator activity (call, email, meeting, note...) on a lead.

    Args:
        lead_id: Lead UUID string.
        fields: {type, title, description}. type defaults to NOTE.
        actor: The User performing the action.

    Returns:
        The created LeadActivity.

    Raises:
        NotFoundError: If the lead does not exist.
        ValidationError: If title is blank or type is unknown or reserved
            for system entries.
    """
    fields = fields or {}
    now = now or utcnow()
    lead = get_lead(lead_id)

    raw_type = (fields.get("type") or "NOTE").strip().upper()
    if raw_type in LeadActivity.SYSTEM_TYPES:
        raise ValidationError(
            f"Activity type '{raw_type}' is reserved for system entries.", field="type"
        )
    activity_type = parse_choice(raw_type, LeadActivity.USER_TYPES, "type")

    title = sanitize(fields.get("title"))
    if not title:
        raise ValidationError("Title is required.", field="title")

    activity = LeadActivity(
        lead_id=lead.id,
        type=activity_type,
        title=title,
        description=sanitize(fields.get("description")),
        performed_by=actor_label(actor),
        performed_by_id=getattr(actor, "id", None),
        metadata_={},
        created_at=now,
    )
    db.session.add(activity)

    if activity_type in LeadActivity.CONTACT_TYPES:
        lead.contact_count = (lead.contact_count or 0) + 1
        lead.last_contacted_at = now
        lead.version = (lead.version or 0) + 1

    db.session.flush()
    return activity


# ─── Helpers ─────────────────────────────────────────────────────

def _apply_conversion_rules(lead, old_status, fields, link_target, now):
    """Keep the business link consistent with the (new) status.

    Returns True if anything on the lead changed.
    """
    before = (lead.converted_to_id, lead.converted_at)

    if lead.status != "WON":
        conversion_service.clear_link(lead)
    else:
        if link_target is not None:
            conversion_service.apply_link(lead, link_target, now=now)
        elif "convertedToId" in fields and old_status == "WON":
            # Explicit null on a lead that was already WON: unlink.
            conversion_service.clear_link(lead)

        if old_status != "WON" and lead.converted_to_id is None:
            conversion_service.auto_match_by_email(lead, now=now)

        if lead.converted_to_id and lead.converted_at is None:
            # Pre-linked before the lead was marked WON.
            lead.converted_at = now

    return before != (lead.converted_to_id, lead.converted_at)


def _assignment_entry(kind, old_id, new_id, new_name):
    metadata = {"kind": kind, "from": old_id, "to": new_id}
    if new_id:
        return (
            "ASSIGNED",
            f"Assigned to {new_name or 'someone'}",
            f"Lead assigned to {new_name or new_id}",
            metadata,
        )
    return ("ASSIGNED", "Unassigned", "Lead was unassigned", metadata)


def _log_system_activity(lead, activity_type, title, description=None,
                         actor=None, metadata=None, now=None):
    if activity_type not in LeadActivity.SYSTEM_TYPES:
        raise ValueError(f"{activity_type} is not a system activity type")
    activity = LeadActivity(
        lead_id=lead.id,
        type=activity_type,
        title=title,
        description=description,
        performed_by=actor_label(actor),
        performed_by_id=getattr(actor, "id", None),
        metadata_=metadata or {},
        created_at=now or utcnow(),
    )
    db.session.add(activity)
    return activity


def _column_width(attr):
    return getattr(Lead.__table__.columns[attr].type, "length", None)


def _column_text(value, attr, field):
    """Sanitize a text field and reject it if it overflows its column."""
    cleaned = sanitize(value)
    width = _column_width(attr)
    if cleaned and width and len(cleaned) > width:
        raise ValidationError(
            f"{field} is too long (max {width} characters).", field=field
        )
    return cleaned


def _clip(text, attr):
    """Truncate captured request metadata to its column width."""
    width = _column_width(attr)
    if text is None or not width:
        return text
    return text[:width]


def _load_team_member(team_member_id):
    if not team_member_id:
        return None
    member = db.session.get(TeamMember, team_member_id)
    if member is None:
        raise ValidationError(
            f"Team member {team_member_id} not found.", field="teamMemberId"
        )
    return member


def _load_user(user_id):
    if not user_id:
        return None
    user = db.session.get(User, user_id)
    if user is None:
        raise ValidationError(f"User {user_id} not found.", field="assignedToId")
    return user


def _differs(current, new):
    """Compare stored and incoming values; datetimes compare in UTC."""
    if hasattr(current, "tzinfo") or hasattr(new, "tzinfo"):
        return as_utc(current) != as_utc(new)
    return current != new
