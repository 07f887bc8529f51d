"""
Error taxonomy for the KnowHive API.

Every domain error carries the HTTP status it maps to; ``app.main``
registers a single handler that renders them as ``{"detail": message}``.
Absent records are not errors: lookups return ``None``.
"""


class KnowHiveError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class InvalidIdentifier(KnowHiveError):
    status_code = 400
    default_message = "Invalid article ID"


class InvalidPayload(KnowHiveError):
    status_code = 400
    default_message = "Invalid request payload"


class Unauthorized(KnowHiveError):
    status_code = 401
    default_message = "Unauthorized access"

    @property
    def headers(self) -> dict[str, str]:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(KnowHiveError):
    status_code = 403
    default_message = "Forbidden access"


class StoreFailure(KnowHiveError):
    status_code = 500
    default_message = "Database operation failed"


class MailFailure(KnowHiveError):
    status_code = 500
    default_message = "Failed to send email"
