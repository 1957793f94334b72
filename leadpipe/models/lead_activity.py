"""LeadActivity model — immutable timeline entries on a lead.

Two separate vocabularies:
- USER_TYPES: logged by operators through the "add activity" action.
- SYSTEM_TYPES: written only by lead_service as side effects of
  create / status change / assignment. Never accepted from input.
"""

import uuid
from datetime import datetime, timezone

from leadpipe.extensions import db


class LeadActivity(db.Model):
    __tablename__ = "lead_activities"

    USER_TYPES = (
        "NOTE",
        "EMAIL_SENT",
        "EMAIL_RECEIVED",
        "CALL",
        "MEETING",
        "DEMO",
        "FOLLOW_UP",
    )

    SYSTEM_TYPES = ("STATUS_CHANGE", "ASSIGNED", "CREATED")

    # -- User types that count as a touch with the lead (NOTE does not) --
    CONTACT_TYPES = (
        "EMAIL_SENT",
        "EMAIL_RECEIVED",
        "CALL",
        "MEETING",
        "DEMO",
        "FOLLOW_UP",
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    lead_id = db.Column(
        db.String(36),
        db.ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    performed_by = db.Column(db.String(255), nullable=True)  # actor label
    performed_by_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # e.g. {"oldStatus": "NEW", "newStatus": "CONTACTED"}
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    # --- Relationships ---
    lead = db.relationship("Lead", back_populates="activities")

    def __repr__(self):
        return f"<LeadActivity {self.type} on {self.lead_id}>"
