"""Lead list queries — filters, sort orders, pagination.

Filters combine with AND. "all", blank and unknown values are ignored so a
stale dropdown never turns into an empty result. Enum values are matched
case-insensitively ("won" == "WON").
"""

from collections import namedtuple

from flask import current_app
from sqlalchemy import case, or_

from leadpipe.models.lead import Lead
from leadpipe.services.ownership import UNASSIGNED, owner_clause
from leadpipe.services.utils import contains_pattern

DEFAULT_SORT = "date_desc"

SORT_KEYS = (
    "date_desc",
    "date_asc",
    "priority_desc",
    "priority_asc",
    "name_asc",
    "name_desc",
    "value_desc",
    "value_asc",
)

Page = namedtuple("Page", ["items", "total", "pages", "page", "limit"])

_priority_rank = case(
    {priority: rank for rank, priority in enumerate(Lead.PRIORITIES)},
    value=Lead.priority,
    else_=-1,
)


class LeadFilters:
    """Parsed list parameters for GET /leads."""

    def __init__(self, search=None, status=None, source=None, priority=None,
                 assigned_to=None, sort_by=None, page=1, limit=None):
        self.search = (search or "").strip() or None
        self.status = _choice(status, Lead.STATUSES)
        self.source = _choice(source, Lead.SOURCES)
        self.priority = _choice(priority, Lead.PRIORITIES)
        self.assigned_to = _assignee(assigned_to)
        self.sort_by = sort_by if sort_by in SORT_KEYS else DEFAULT_SORT
        self.page = max(_to_int(page, 1), 1)

        default_limit = current_app.config.get("LEADS_PAGE_SIZE", 20)
        max_limit = current_app.config.get("LEADS_MAX_PAGE_SIZE", 100)
        self.limit = min(max(_to_int(limit, default_limit), 1), max_limit)

    @classmethod
    def from_args(cls, args):
        """Build filters from request.args (wire names)."""
        return cls(
            search=args.get("search"),
            status=args.get("status"),
            source=args.get("source"),
            priority=args.get("priority"),
            assigned_to=args.get("assignedTo"),
            sort_by=args.get("sortBy"),
            page=args.get("page"),
            limit=args.get("limit"),
        )


def apply_filters(query, filters):
    if filters.search:
        pattern = contains_pattern(filters.search)
        query = query.filter(or_(
            Lead.name.ilike(pattern, escape="\\"),
            Lead.email.ilike(pattern, escape="\\"),
            Lead.company.ilike(pattern, escape="\\"),
            Lead.phone.ilike(pattern, escape="\\"),
        ))
    if filters.status:
        query = query.filter(Lead.status == filters.status)
    if filters.source:
        query = query.filter(Lead.source == filters.source)
    if filters.priority:
        query = query.filter(Lead.priority == filters.priority)
    if filters.assigned_to:
        query = query.filter(owner_clause(filters.assigned_to))
    return query


def apply_sort(query, sort_by):
    """Order a lead query. Ties fall back to newest first."""
    if sort_by == "date_asc":
        return query.order_by(Lead.created_at.asc(), Lead.id)
    if sort_by == "priority_desc":
        return query.order_by(_priority_rank.desc(), Lead.created_at.desc(), Lead.id)
    if sort_by == "priority_asc":
        return query.order_by(_priority_rank.asc(), Lead.created_at.desc(), Lead.id)
    if sort_by == "name_asc":
        return query.order_by(Lead.name.asc(), Lead.created_at.desc(), Lead.id)
    if sort_by == "name_desc":
        return query.order_by(Lead.name.desc(), Lead.created_at.desc(), Lead.id)
    if sort_by == "value_desc":
        # Leads without a value go last in both directions.
        return query.order_by(
            Lead.estimated_value.is_(None),
            Lead.estimated_value.desc(),
            Lead.created_at.desc(),
            Lead.id,
        )
    if sort_by == "value_asc":
        return query.order_by(
            Lead.estimated_value.is_(None),
            Lead.estimated_value.asc(),
            Lead.created_at.desc(),
            Lead.id,
        )
    return query.order_by(Lead.created_at.desc(), Lead.id)


def list_leads(filters):
    """Run a filtered, sorted, paginated lead query.

    Returns:
        Page(items, total, pages, page, limit). `pages` is 0 when nothing
        matches.
    """
    query = apply_filters(Lead.query, filters)
    total = query.order_by(None).count()
    pages = (total + filters.limit - 1) // filters.limit
    offset = (filters.page - 1) * filters.limit

    items = (
        apply_sort(query, filters.sort_by)
        .offset(offset)
        .limit(filters.limit)
        .all()
    )
    return Page(items, total, pages, filters.page, filters.limit)


# ─── Helpers ─────────────────────────────────────────────────────

def _choice(value, choices):
    if not value:
        return None
    normalized = str(value).strip().upper()
    return normalized if normalized in choices else None


def _assignee(value):
    value = (value or "").strip()
    if not value or value.lower() == "all":
        return None
    if value.lower() == UNASSIGNED:
        return UNASSIGNED
    return value


def _to_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
