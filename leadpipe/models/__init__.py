# Import every model so Alembic autogenerate sees the full schema.

from leadpipe.models.user import User  # noqa: F401
from leadpipe.models.team_member import TeamMember  # noqa: F401
from leadpipe.models.business import Business  # noqa: F401
from leadpipe.models.lead import Lead  # noqa: F401
from leadpipe.models.lead_activity import LeadActivity  # noqa: F401
