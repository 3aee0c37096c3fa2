"""Error taxonomy shared by services, controllers and views.

Every error carries a short machine code (sent to clients as ``{"error": code}``)
and the HTTP status the controllers answer with.
"""


class StorefrontError(Exception):
    code = "error"
    status_code = 500

    def __init__(self, message: str = "", **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self):
        payload = {"error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class ValidationError(StorefrontError):
    code = "validation_error"
    status_code = 400


class AuthorizationError(StorefrontError):
    code = "unauthorized"
    status_code = 403


class AuthenticationRequired(AuthorizationError):
    code = "authentication_required"
    status_code = 401


class NotFoundError(StorefrontError):
    code = "not_found"
    status_code = 404


class InvalidTransition(StorefrontError):
    code = "invalid_transition"
    status_code = 409


class TransitionConflict(InvalidTransition):
    code = "transition_conflict"


class TransientNetworkError(StorefrontError):
    code = "service_unavailable"
    status_code = 503
