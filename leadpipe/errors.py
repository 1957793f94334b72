"""Lead pipeline exceptions.

Services raise these; the app-level error handler rolls back the session
and turns them into JSON responses with the matching HTTP status.
"""


class LeadPipelineError(Exception):
    """Base exception for the lead pipeline."""

    status_code = 400

    def __init__(self, message="An error occurred", field=None):
        self.message = message
        self.field = field
        super().__init__(self.message)

    def to_dict(self):
        payload = {"message": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(LeadPipelineError):
    """Missing required field or malformed input. Nothing is applied."""

    status_code = 400


class NotFoundError(LeadPipelineError):
    """Lead, activity, business or team member id does not resolve."""

    status_code = 404

    def __init__(self, resource="Resource", resource_id=None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        super().__init__(message)


class ConflictError(LeadPipelineError):
    """Write based on a stale read (version mismatch)."""

    status_code = 409
