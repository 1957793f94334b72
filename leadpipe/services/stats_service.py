"""Lead stats — pipeline summary for the superadmin dashboard.

Computed on demand over the full, unfiltered lead set. Read-only: nothing
here writes to the session. Calendar boundaries (today / this week / this
month) are taken in the configured timezone; weeks start on Sunday.
"""

from collections import Counter
from datetime import timedelta
from zoneinfo import ZoneInfo

from flask import current_app
from sqlalchemy.orm import selectinload

from leadpipe.models.lead import Lead
from leadpipe.services.lead_service import is_overdue
from leadpipe.services.ownership import is_unassigned, resolve_owner
from leadpipe.services.utils import as_utc, isoformat, utcnow

RECENT_CONVERSIONS_LIMIT = 5
LEADS_BY_DAY_WINDOW = 30


def _boundaries(now, tz):
    """Start of today, tomorrow, this week (Sunday) and this month, in UTC."""
    local = now.astimezone(tz)
    start_of_day = local.replace(hour=0, minute=0, second=0, microsecond=0)
    # Python weekday(): Monday=0 ... Sunday=6
    days_since_sunday = (start_of_day.weekday() + 1) % 7
    start_of_week = start_of_day - timedelta(days=days_since_sunday)
    start_of_month = start_of_day.replace(day=1)
    end_of_day = start_of_day + timedelta(days=1)
    return (
        as_utc(start_of_day),
        as_utc(end_of_day),
        as_utc(start_of_week),
        as_utc(start_of_month),
    )


def summarize(leads, now=None, tz=None):
    """Compute pipeline stats over an iterable of leads.

    Args:
        leads: Lead objects (the whole pipeline, not a filtered page).
        now: Reference time (aware). Defaults to the current UTC time.
        tz: tzinfo for calendar boundaries. Defaults to UTC.

    Returns:
        dict with overview, byStatus, bySource, byPriority, byTeamMember,
        leadsByDay and recentConversions. Safe on an empty list.
    """
    now = as_utc(now) or utcnow()
    tz = tz or ZoneInfo("UTC")
    start_of_day, end_of_day, start_of_week, start_of_month = _boundaries(now, tz)
    window_start = now - timedelta(days=LEADS_BY_DAY_WINDOW)

    total = 0
    won = 0
    leads_today = leads_this_week = leads_this_month = 0
    follow_ups_today = 0
    overdue = 0
    unassigned = 0
    pipeline_value = 0.0
    score_sum = 0

    by_status = Counter()
    by_source = Counter()
    by_priority = Counter()
    by_owner = {}
    leads_by_day = Counter()
    conversions = []

    for lead in leads:
        total += 1
        created = as_utc(lead.created_at)
        follow_up = as_utc(lead.next_follow_up_at)
        is_open = lead.status not in Lead.TERMINAL_STATUSES

        by_status[lead.status.lower()] += 1
        by_source[lead.source.lower()] += 1
        by_priority[lead.priority.lower()] += 1
        score_sum += lead.score or 0

        if lead.status == "WON":
            won += 1
            if lead.converted_at is not None:
                conversions.append(lead)

        if created is not None:
            if created >= start_of_day:
                leads_today += 1
            if created >= start_of_week:
                leads_this_week += 1
            if created >= start_of_month:
                leads_this_month += 1
            if created >= window_start:
                day = created.astimezone(tz).date().isoformat()
                leads_by_day[day] += 1

        if is_open and follow_up is not None and start_of_day <= follow_up < end_of_day:
            follow_ups_today += 1
        if is_overdue(lead, now=now):
            overdue += 1
        if is_open and lead.estimated_value is not None:
            pipeline_value += lead.estimated_value

        if is_unassigned(lead):
            unassigned += 1
        else:
            owner = resolve_owner(lead)
            entry = by_owner.setdefault(
                (owner.kind, owner.id),
                {"id": owner.id, "name": owner.name, "kind": owner.kind, "count": 0},
            )
            entry["count"] += 1

    conversions.sort(key=lambda l: as_utc(l.converted_at), reverse=True)

    return {
        "overview": {
            "totalLeads": total,
            "leadsToday": leads_today,
            "leadsThisWeek": leads_this_week,
            "leadsThisMonth": leads_this_month,
            "conversionRate": (won / total) if total else 0.0,
            "followUpsToday": follow_ups_today,
            "overdueFollowUps": overdue,
            "unassignedLeads": unassigned,
            "pipelineValue": pipeline_value,
            "avgScore": round(score_sum / total) if total else 0,
        },
        "byStatus": dict(by_status),
        "bySource": dict(by_source),
        "byPriority": dict(by_priority),
        "byTeamMember": sorted(
            by_owner.values(), key=lambda e: (-e["count"], e["name"] or "")
        ),
        "leadsByDay": dict(sorted(leads_by_day.items())),
        "recentConversions": [
            {
                "id": lead.id,
                "name": lead.name,
                "company": lead.company,
                "convertedAt": isoformat(lead.converted_at),
                "estimatedValue": lead.estimated_value,
                "convertedTo": lead.converted_to,
            }
            for lead in conversions[:RECENT_CONVERSIONS_LIMIT]
        ],
    }


def compute_lead_stats(now=None, tz=None):
    """Load every lead (with owners) and summarize the pipeline."""
    if tz is None:
        tz = ZoneInfo(current_app.config.get("LEADS_STATS_TIMEZONE") or "UTC")
    leads = (
        Lead.query
        .options(selectinload(Lead.team_member), selectinload(Lead.assigned_to))
        .all()
    )
    return summarize(leads, now=now, tz=tz)
