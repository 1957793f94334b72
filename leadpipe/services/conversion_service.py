"""Conversion service — link WON leads to storefront Business accounts.

- auto_match_by_email: fired by lead_service when a lead moves to WON;
  links only on a single case-insensitive exact email match.
- search_businesses: free-text lookup for the manual link picker.
- link_manually / unlink: operator-driven link management.

Functions flush but do NOT commit — the caller commits.
"""

import logging

from flask import current_app
from sqlalchemy import func, or_

from leadpipe.errors import NotFoundError, ValidationError
from leadpipe.extensions import db
from leadpipe.models.business import Business
from leadpipe.models.lead import Lead
from leadpipe.services.utils import contains_pattern, isoformat, utcnow

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


def business_snapshot(business):
    """Display fields of a business, as cached on the lead."""
    return {
        "id": business.id,
        "name": business.name,
        "slug": business.slug,
        "plan": business.subscription_plan,
        "createdAt": isoformat(business.created_at),
    }


def find_by_exact_email(email):
    """All businesses whose email equals `email`, ignoring case and whitespace."""
    normalized = (email or "").strip().lower()
    if not normalized:
        return []
    return (
        Business.query
        .filter(func.lower(Business.email) == normalized)
        .order_by(Business.created_at.asc())
        .all()
    )


def apply_link(lead, business, now=None):
    """Point a lead at a business and refresh the display snapshot.

    converted_at is stamped only for WON leads that don't have one yet;
    a link on a non-WON lead stays provisional.
    """
    now = now or utcnow()
    if lead.converted_to_id != business.id:
        lead.converted_at = None
    lead.converted_to_id = business.id
    lead.converted_to = business_snapshot(business)
    if lead.status == "WON" and lead.converted_at is None:
        lead.converted_at = now


def clear_link(lead):
    lead.converted_to_id = None
    lead.converted_at = None
    lead.converted_to = None


def auto_match_by_email(lead, now=None):
    """Link a WON lead to the one business sharing its email.

    Returns:
        The snapshot dict of the linked business, or None when the lead is
        not eligible or the match is missing / ambiguous.
    """
    if lead.status != "WON" or not lead.email or lead.converted_to_id:
        return None

    matches = find_by_exact_email(lead.email)
    if len(matches) != 1:
        logger.info(
            f"Auto-match skipped for lead {lead.id}: "
            f"{len(matches)} business(es) with email {lead.email}"
        )
        return None

    business = matches[0]
    apply_link(lead, business, now=now)
    db.session.flush()
    logger.info(f"Lead {lead.id} auto-matched to business {business.slug}")
    return lead.converted_to


def search_businesses(query=None, email=None):
    """Find businesses for the manual link picker.

    Args:
        query: Free text matched against name, slug and email.
        email: Exact email lookup (used to pre-fill the picker).

    Returns:
        Tuple of (businesses, exact_match). exact_match is True only when
        exactly one business has that exact email.
    """
    limit = current_app.config.get("LEADS_BUSINESS_SEARCH_LIMIT", 10)

    if email is not None:
        matches = find_by_exact_email(email)
        return matches[:limit], len(matches) == 1

    term = (query or "").strip()
    if len(term) < MIN_QUERY_LENGTH:
        return [], False

    pattern = contains_pattern(term)
    candidates = (
        Business.query
        .filter(or_(
            Business.name.ilike(pattern, escape="\\"),
            Business.slug.ilike(pattern, escape="\\"),
            Business.email.ilike(pattern, escape="\\"),
        ))
        .order_by(Business.name.asc())
        .limit(limit * 5)
        .all()
    )

    lowered = term.lower()
    candidates.sort(key=lambda b: (_rank(b, lowered), (b.name or "").lower()))

    exact_email = [b for b in candidates if (b.email or "").lower() == lowered]
    return candidates[:limit], len(exact_email) == 1


def link_manually(lead_id, business_id, now=None):
    """Link a lead to a business chosen by the operator.

    Status is never changed. Linking a lead that is not WON yet is allowed
    (pre-link); converted_at is then set when the lead moves to WON.

    Raises:
        NotFoundError: If the lead or the business does not exist.
    """
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead", lead_id)
    if not business_id:
        raise ValidationError("businessId is required.", field="businessId")

    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError("Business", business_id)

    apply_link(lead, business, now=now)
    lead.version = (lead.version or 0) + 1
    db.session.flush()
    logger.info(f"Lead {lead.id} linked to business {business.slug}")
    return lead


def unlink(lead_id):
    """Remove a lead's business link without touching its status."""
    lead = db.session.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead", lead_id)

    if lead.converted_to_id is not None:
        clear_link(lead)
        lead.version = (lead.version or 0) + 1
        db.session.flush()
        logger.info(f"Lead {lead.id} unlinked from its business")
    return lead


def _rank(business, term):
    """0 = exact match, 1 = prefix match, 2 = substring match."""
    fields = [
        (business.name or "").lower(),
        (business.slug or "").lower(),
        (business.email or "").lower(),
    ]
    if term in fields:
        return 0
    if any(f.startswith(term) for f in fields):
        return 1
    return 2
