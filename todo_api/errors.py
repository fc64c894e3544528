"""
Error taxonomy for the to-do API. Each error carries the HTTP status it maps to;
main.py renders them with the same detail shape as HTTPException.
"""


class TodoApiError(Exception):
    status_code = 500
    error = "server_error"
    description = "Internal error"

    def __init__(self, description: str | None = None, *, status_code: int | None = None):
        super().__init__(description or self.description)
        if description is not None:
            self.description = description
        if status_code is not None:
            self.status_code = status_code

    @property
    def headers(self) -> dict[str, str] | None:
        return None

    def detail(self) -> dict:
        return {"error": self.error, "error_description": self.description}


class AuthenticationFailure(TodoApiError):
    """Missing, malformed, expired or mis-keyed token. The description stays generic."""

    status_code = 401
    error = "invalid_token"
    description = "Token verification failed"

    @property
    def headers(self) -> dict[str, str]:
        return {"WWW-Authenticate": "Bearer"}


class AuthorizationDenied(TodoApiError):
    status_code = 403
    error = "access_denied"
    description = "Access denied by policy"


class UpstreamUnavailable(TodoApiError):
    status_code = 502
    error = "upstream_unavailable"
    description = "Upstream service unavailable"


class NotFound(TodoApiError):
    status_code = 404
    error = "not_found"
    description = "Not found"


class ValidationFailure(TodoApiError):
    status_code = 400
    error = "invalid_request"
    description = "Invalid request"
