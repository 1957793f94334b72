"""User model.

Superadmin operators of the storefront platform. Also the target of the
legacy `assigned_to` ownership on leads (before the sales team existed).
Flask-Login integration via UserMixin.
"""

import uuid

from flask_login import UserMixin

from leadpipe.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(255))
    is_superadmin = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    assigned_leads = db.relationship(
        "Lead",
        foreign_keys="Lead.assigned_to_id",
        back_populates="assigned_to",
        lazy="dynamic",
    )

    @property
    def display_name(self):
        return self.full_name or self.email

    def __repr__(self):
        return f"<User {self.email}>"
