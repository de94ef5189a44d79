"""Domain errors raised by services and access checks.

Each error carries the HTTP status it maps to, a user-facing ``detail`` and
a stable machine ``code``. The global handler in
``guildchat.middleware.error_handler`` renders them as JSON.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = 400
    code: str = "error"
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class Forbidden(ChatError):
    status_code = 403
    code = "forbidden"
    default_detail = "Access denied"


class NotFound(ChatError):
    status_code = 404
    code = "not_found"
    default_detail = "Not found"


class ValidationFailed(ChatError):
    status_code = 400
    code = "validation_failed"
    default_detail = "Invalid request"


class Conflict(ChatError):
    status_code = 409
    code = "conflict"
    default_detail = "Request conflicts with current state"


class InviteExpired(Conflict):
    code = "invite_expired"
    default_detail = "This invite has expired"


class InviteExhausted(Conflict):
    code = "invite_exhausted"
    default_detail = "This invite has reached its maximum number of uses"


class AlreadyMember(Conflict):
    code = "already_member"
    default_detail = "You are already a member of this server"
