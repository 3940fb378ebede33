"""Domain error taxonomy shared by the store, the service, and the API layer."""


class UserhubError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, detail: str | None = None):
        self.message = message or detail or self.default_message
        self.detail = detail or self.message
        super().__init__(self.detail)


class ValidationError(UserhubError):
    """Malformed or missing input."""

    status_code = 422
    default_message = "Validation error"


class ConflictError(UserhubError):
    """A uniqueness constraint would be violated."""

    status_code = 422
    default_message = "Conflict"


class NotFoundError(UserhubError):
    """An id or name lookup missed."""

    status_code = 404
    default_message = "Not found"


class InvalidStateError(UserhubError):
    """The operation does not apply to the current association state.

    The client-facing message is always "Error"; ``detail`` says why.
    """

    status_code = 400
    default_message = "Error"

    def __init__(self, detail: str | None = None):
        super().__init__(self.default_message, detail)


class AuthError(UserhubError):
    """The bearer token is missing, malformed, or expired."""

    status_code = 401
    default_message = "Not authenticated"
