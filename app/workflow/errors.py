"""
Workflow errors. Each carries the HTTP status the routes answer with.

Replays are not errors; handlers return alreadyX flags instead.
"""


class WorkflowError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'ok': False, 'error': self.message}


class LeadNotFound(WorkflowError):
    status_code = 404

    def __init__(self, lead_id=None):
        super().__init__('Lead not found')
        self.lead_id = lead_id


class PreconditionFailed(WorkflowError):
    status_code = 400


class Unauthorized(WorkflowError):
    status_code = 401


class Forbidden(WorkflowError):
    status_code = 403


class DeliveryFailed(WorkflowError):
    """Customer-facing send failed before any state was written."""
    status_code = 502
