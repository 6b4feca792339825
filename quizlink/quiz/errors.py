"""
Error taxonomy for the quiz engine.

Every error carries the HTTP status and the stable ``code`` string the
taker and teacher UIs switch on.
"""


class QuizError(Exception):
    status_code = 500
    code = "QuizError"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.default_message())
        self.message = str(self)

    @classmethod
    def default_message(cls) -> str:
        return "Quiz operation failed"

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.message, 'code': self.code}


class ValidationError(QuizError):
    """Malformed quiz definition or request payload. Never persisted."""
    status_code = 400
    code = "ValidationError"

    def __init__(self, message: str = None, errors: list = None):
        self.errors = list(errors or [])
        if message is None and self.errors:
            message = "; ".join(self.errors)
        super().__init__(message)

    @classmethod
    def default_message(cls) -> str:
        return "Invalid quiz data"

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.errors:
            data['errors'] = self.errors
        return data


class NotFound(QuizError):
    status_code = 404
    code = "NotFound"

    @classmethod
    def default_message(cls) -> str:
        return "Quiz not found or no longer available"


class NotAvailable(QuizError):
    """The quiz exists but is outside its availability window."""
    status_code = 410
    code = "NotAvailable"

    @classmethod
    def default_message(cls) -> str:
        return "Quiz is not available at this time"


class Forbidden(QuizError):
    status_code = 403
    code = "Forbidden"

    @classmethod
    def default_message(cls) -> str:
        return "You do not have access to this quiz"


class LoginRequired(QuizError):
    status_code = 401
    code = "LoginRequired"

    @classmethod
    def default_message(cls) -> str:
        return "Login required for this quiz"


class AttemptsExceeded(QuizError):
    status_code = 409
    code = "AttemptsExceeded"

    @classmethod
    def default_message(cls) -> str:
        return "Maximum attempts exceeded"


class AlreadySubmitted(QuizError):
    status_code = 409
    code = "AlreadySubmitted"

    @classmethod
    def default_message(cls) -> str:
        return "This quiz session has already been submitted"


class SessionExpired(QuizError):
    """Answers arrived after the deadline; the session must be finalized."""
    status_code = 409
    code = "SessionExpired"

    @classmethod
    def default_message(cls) -> str:
        return "Time is up for this quiz session"


class InvalidSessionToken(QuizError):
    status_code = 400
    code = "InvalidSessionToken"

    @classmethod
    def default_message(cls) -> str:
        return "Invalid or expired session token"


class LinkIssueError(QuizError):
    status_code = 503
    code = "LinkIssueError"

    @classmethod
    def default_message(cls) -> str:
        return "Could not allocate a unique shareable link"
