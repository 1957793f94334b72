"""Small helpers shared by the lead services: input cleanup and datetimes."""

import math
from datetime import date, datetime, timezone

import bleach

from leadpipe.errors import ValidationError


def sanitize(text):
    """Strip all HTML tags from user input. Blank results become None."""
    if text is None:
        return None
    cleaned = bleach.clean(str(text), tags=[], strip=True).strip()
    return cleaned or None


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """Return an aware UTC datetime.

    SQLite returns naive datetimes; Postgres returns aware ones.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def parse_datetime(value, field):
    """Parse an ISO date or datetime from a request payload.

    Accepts datetime/date objects, "2026-10-20" and "2026-10-20T09:30:00Z".
    Blank values parse to None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise ValidationError(f"Invalid date for {field}.", field=field)
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"Invalid date for {field}.", field=field)
    return as_utc(parsed)


def parse_float(value, field):
    """Parse an optional currency amount. Blank values parse to None."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number.", field=field)
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number.", field=field)
    # float() accepts "nan" and "inf", which do not serialize as JSON.
    if not math.isfinite(parsed):
        raise ValidationError(f"{field} must be a number.", field=field)
    if parsed < 0:
        raise ValidationError(f"{field} cannot be negative.", field=field)
    return parsed


def parse_int(value, field, default=None):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number.", field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number.", field=field)


def parse_choice(value, choices, field, default=None):
    """Upper-case an enum value and check it against the allowed choices."""
    if value is None or value == "":
        return default
    normalized = str(value).strip().upper()
    if normalized not in choices:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(choices)}",
            field=field,
        )
    return normalized


def normalize_tags(value):
    """De-duplicate tags, keeping first-seen order."""
    if value is None or value == "":
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple, set)):
        raise ValidationError("tags must be a list of strings.", field="tags")
    tags = []
    for tag in value:
        cleaned = sanitize(tag)
        if cleaned and cleaned not in tags:
            tags.append(cleaned)
    return tags


def contains_pattern(term):
    """ILIKE pattern matching `term` anywhere, with % and _ taken literally.

    Use with `escape="\\"`.
    """
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
