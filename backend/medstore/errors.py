"""Error taxonomy shared by every workflow service.

Each error carries a stable ``kind`` for programmatic handling and a
user-facing message; the API layer maps ``http_status`` onto the response.
"""


class WorkflowError(Exception):
    kind = "WorkflowError"
    http_status = 400
    default_message = "Request could not be completed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"detail": self.message, "kind": self.kind}


class Unauthenticated(WorkflowError):
    kind = "Unauthenticated"
    http_status = 401
    default_message = "Please log in to continue"


class PermissionDenied(WorkflowError):
    kind = "PermissionDenied"
    http_status = 403
    default_message = "You are not allowed to perform this action"


class NotFound(WorkflowError):
    kind = "NotFound"
    http_status = 404
    default_message = "Not found"


class InvalidInput(WorkflowError):
    kind = "InvalidInput"
    http_status = 422
    default_message = "Invalid input"


class PrescriptionRequired(WorkflowError):
    kind = "PrescriptionRequired"
    http_status = 422
    default_message = "Please upload prescription for prescription medicines"


class AlreadyReviewed(WorkflowError):
    kind = "AlreadyReviewed"
    http_status = 409
    default_message = "Prescription has already been reviewed"


class StateConflict(WorkflowError):
    kind = "StateConflict"
    http_status = 409
    default_message = "Order is not in a state that allows this action"


class UpstreamFailure(WorkflowError):
    kind = "UpstreamFailure"
    http_status = 502
    default_message = "An external service failed, please try again"
