"""TeamMember model — the sales team.

Reference table for lead ownership. Owned by team management, not by the
lead pipeline; leads only point at it.
"""

import uuid

from leadpipe.extensions import db


class TeamMember(db.Model):
    __tablename__ = "team_members"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(db.String(50), nullable=True)  # e.g. SALES_REP, SALES_MANAGER
    avatar = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    assigned_leads = db.relationship(
        "Lead", back_populates="team_member", lazy="dynamic"
    )

    def __repr__(self):
        return f"<TeamMember {self.name}>"
