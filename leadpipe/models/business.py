"""Business model — a storefront customer account.

Created and managed by the storefront platform. The lead pipeline only
searches businesses and links converted leads to them.
"""

import uuid

from leadpipe.extensions import db


class Business(db.Model):
    __tablename__ = "businesses"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=False)
    email = db.Column(db.String(255), nullable=True, index=True)
    subscription_plan = db.Column(
        db.String(50), default="FREE", nullable=False
    )  # FREE | STARTER | PRO | BUSINESS
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<Business {self.slug}>"
