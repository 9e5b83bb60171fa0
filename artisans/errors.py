"""
Domain errors raised by the service layer.

Routers never catch these; ``artisans.main`` installs one exception handler
that turns any ``ArtisansError`` into a JSON body ``{"detail", "code"}``
with the class's HTTP status.
"""


class ArtisansError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, detail: str = ""):
        self.detail = detail or (self.__doc__ or self.code).strip()
        super().__init__(self.detail)


class NotAuthenticated(ArtisansError):
    """Authentication required."""
    status_code = 401
    code = "not_authenticated"


class PermissionDenied(ArtisansError):
    """You are not allowed to perform this action."""
    status_code = 403
    code = "permission_denied"


class NotFound(ArtisansError):
    """Resource not found."""
    status_code = 404
    code = "not_found"


class ValidationFailed(ArtisansError):
    """Invalid input."""
    status_code = 422
    code = "validation_failed"


class Conflict(ArtisansError):
    """The resource was modified by someone else. Reload and try again."""
    status_code = 409
    code = "conflict"


class InvalidState(ArtisansError):
    """The resource is not in a state that allows this action."""
    status_code = 409
    code = "invalid_state"


class PreconditionFailed(ArtisansError):
    """The resource version does not match If-Match."""
    status_code = 412
    code = "precondition_failed"


# ── Invitation workflow ──

class InvitationExpired(ArtisansError):
    """This invitation has expired."""
    status_code = 410
    code = "expired"


class AlreadyProcessed(ArtisansError):
    """This invitation has already been processed."""
    status_code = 409
    code = "already_processed"


class EmailMismatch(ArtisansError):
    """This invitation was sent to a different email address."""
    status_code = 403
    code = "email_mismatch"


# ── Bidding workflow ──

class AlreadyAwarded(ArtisansError):
    """This service request has already been awarded."""
    status_code = 409
    code = "already_awarded"
