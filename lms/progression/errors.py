from fastapi import HTTPException


class ProgressionError(HTTPException):
    """
    Base for progression failures.
    Raised by the engine and rendered by FastAPI as {"detail": ...}.
    """
    status_code = 400
    default_detail = "Request rejected"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFound(ProgressionError):
    status_code = 404
    default_detail = "Not found"


class Locked(ProgressionError):
    status_code = 403
    default_detail = "Module is locked"


class DaysIncomplete(ProgressionError):
    status_code = 403
    default_detail = "Complete all days to access MCQ"


class AlreadyAttempted(ProgressionError):
    status_code = 403
    default_detail = "You have already attempted this MCQ"


class AlreadyPassed(ProgressionError):
    status_code = 400
    default_detail = "You have already passed this MCQ"


class InvalidResponseCount(ProgressionError):
    status_code = 400
    default_detail = "Number of responses does not match number of questions"


class InvalidMCQDefinition(ProgressionError):
    status_code = 422
    default_detail = "Invalid MCQ definition"


class Conflict(ProgressionError):
    status_code = 409
    default_detail = "Conflicting record"
