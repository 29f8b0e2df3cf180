"""Domain errors raised by the service layer.

Each error carries the HTTP status it maps to and a stable error code that
the API returns as ``detail``. None of them is retried internally.
"""


class ExamError(Exception):
    """Base class for domain errors."""

    status_code = 400
    default_code = "BAD_REQUEST"

    def __init__(self, code: str | None = None):
        self.code = code or self.default_code
        super().__init__(self.code)


class NotFound(ExamError):
    """Entity is absent."""

    status_code = 404
    default_code = "NOT_FOUND"


class Forbidden(ExamError):
    """Caller is not the resource owner or lacks the role."""

    status_code = 403
    default_code = "FORBIDDEN"


class NotAvailable(ExamError):
    """Test is not published or not visible to the caller."""

    status_code = 403
    default_code = "TEST_NOT_AVAILABLE"


class Conflict(ExamError):
    """Attempt is not in the state the operation requires."""

    status_code = 409
    default_code = "CONFLICT"


class Expired(Conflict):
    """Write attempted after the attempt's deadline."""

    default_code = "ATTEMPT_EXPIRED"


class Unauthorized(ExamError):
    """Missing, invalid, expired or revoked credentials."""

    status_code = 401
    default_code = "UNAUTHENTICATED"


class Gone(ExamError):
    """Invite can no longer be used."""

    status_code = 410
    default_code = "GONE"
