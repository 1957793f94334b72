"""Lead ownership — the one place that decides who owns a lead.

Leads carry two overlapping owner references:
- team_member: the sales team member (current model)
- assigned_to: a superadmin User (legacy, from before the sales team)

team_member wins when both are set; a lead with neither is unassigned.
resolve_owner() answers this for a loaded Lead (serialization, stats) and
owner_clause() expresses the same precedence in SQL (list filtering).
"""

from collections import namedtuple

from sqlalchemy import and_, or_

from leadpipe.models.lead import Lead

UNASSIGNED = "unassigned"

KIND_TEAM_MEMBER = "team_member"
KIND_USER = "user"

Owner = namedtuple("Owner", ["kind", "id", "name", "email", "role", "avatar"])

NO_OWNER = Owner(None, None, None, None, None, None)


def resolve_owner(lead):
    """Return the authoritative Owner of a lead, or NO_OWNER."""
    member = lead.team_member
    if member is not None:
        return Owner(
            KIND_TEAM_MEMBER,
            member.id,
            member.name,
            member.email,
            member.role,
            member.avatar,
        )

    user = lead.assigned_to
    if user is not None:
        return Owner(KIND_USER, user.id, user.display_name, user.email, None, None)

    return NO_OWNER


def is_unassigned(lead):
    return resolve_owner(lead).kind is None


def owner_clause(assignee):
    """SQL predicate matching leads whose resolved owner is `assignee`.

    `assignee` is an owner id or the UNASSIGNED sentinel.
    """
    if assignee == UNASSIGNED:
        return and_(Lead.team_member_id.is_(None), Lead.assigned_to_id.is_(None))

    return or_(
        Lead.team_member_id == assignee,
        and_(Lead.team_member_id.is_(None), Lead.assigned_to_id == assignee),
    )


def owner_dict(owner):
    """Wire shape of an owner, or None when unassigned."""
    if owner.kind is None:
        return None
    return {
        "kind": owner.kind,
        "id": owner.id,
        "name": owner.name,
        "email": owner.email,
        "role": owner.role,
        "avatar": owner.avatar,
    }
