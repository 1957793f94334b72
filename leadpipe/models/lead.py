"""Lead model (superadmin sales CRM).

Tracks prospective storefront customers through the sales funnel, from
first capture to WON (linked to a Business account) or LOST.
Funnel: NEW -> CONTACTED -> QUALIFIED -> DEMO_SCHEDULED -> NEGOTIATING -> WON | LOST
Transitions are free; NURTURING parks a lead without closing it.
"""

import uuid
from datetime import datetime, timezone

from leadpipe.extensions import db


class Lead(db.Model):
    __tablename__ = "leads"

    # -- Funnel stages --
    STATUSES = [
        "NEW",
        "CONTACTED",
        "QUALIFIED",
        "DEMO_SCHEDULED",
        "NEGOTIATING",
        "WON",
        "LOST",
        "NURTURING",
    ]

    # -- Closed for follow-up purposes (never overdue, excluded from pipeline value) --
    TERMINAL_STATUSES = ("WON", "LOST")

    # -- Ordered lowest to highest --
    PRIORITIES = ["LOW", "MEDIUM", "HIGH", "URGENT"]

    SOURCES = [
        "WEBSITE",
        "DEMO_REQUEST",
        "REFERRAL",
        "SOCIAL",
        "EMAIL",
        "PHONE",
        "PARTNER",
        "EVENT",
        "ADVERTISING",
        "ORGANIC",
        "OTHER",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # --- Contact ---
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(50), nullable=True)
    company = db.Column(db.String(255), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    # --- Classification ---
    source = db.Column(db.String(50), default="OTHER", nullable=False)
    source_detail = db.Column(db.String(255), nullable=True)
    referred_by = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(50), default="NEW", nullable=False, index=True)
    priority = db.Column(db.String(50), default="MEDIUM", nullable=False)
    score = db.Column(db.Integer, default=0, nullable=False)

    # --- Ownership (team_member wins over the legacy assigned_to user) ---
    assigned_to_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    team_member_id = db.Column(
        db.String(36), db.ForeignKey("team_members.id"), nullable=True
    )
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # --- Commercial ---
    business_type = db.Column(db.String(100), nullable=True)
    expected_plan = db.Column(db.String(50), nullable=True)
    estimated_value = db.Column(db.Float, nullable=True)

    # --- Follow-up ---
    last_contacted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    next_follow_up_at = db.Column(db.DateTime(timezone=True), nullable=True)
    contact_count = db.Column(db.Integer, default=0, nullable=False)

    # --- Conversion ---
    converted_to_id = db.Column(
        db.String(36), db.ForeignKey("businesses.id"), nullable=True
    )
    converted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    conversion_notes = db.Column(db.Text, nullable=True)
    # Display snapshot of the linked business, refreshed on link. Can go
    # stale if the business is renamed afterwards.
    converted_to = db.Column(db.JSON, nullable=True)

    # --- Free text ---
    notes = db.Column(db.Text, nullable=True)
    tags = db.Column(db.JSON, default=list)

    # --- Capture metadata (public form) ---
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    landing_page = db.Column(db.String(500), nullable=True)

    version = db.Column(db.Integer, default=1, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # --- Relationships ---
    assigned_to = db.relationship(
        "User", foreign_keys=[assigned_to_id], back_populates="assigned_leads"
    )
    team_member = db.relationship("TeamMember", back_populates="assigned_leads")
    converted_business = db.relationship("Business", foreign_keys=[converted_to_id])
    activities = db.relationship(
        "LeadActivity",
        back_populates="lead",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="LeadActivity.created_at.desc()",
    )

    def __repr__(self):
        return f"<Lead {self.name} ({self.status})>"
