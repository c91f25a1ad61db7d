# teamhub/core/errors.py

from __future__ import annotations

# ============================================================================
# CHAT ERROR TAXONOMY
# ============================================================================
#
# Every failure is terminal for the event that triggered it only. Services
# raise these; the WebSocket dispatcher turns them into an error event sent
# back to the originating socket. Nothing here is ever broadcast.


class ChatError(Exception):
    """Base class for failures reported back to a single socket."""

    default_reason = "Request failed"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class AuthenticationFailure(ChatError):
    default_reason = "Authentication failed"


class InvalidCredential(AuthenticationFailure):
    default_reason = "Invalid token"


class ExpiredCredential(AuthenticationFailure):
    default_reason = "Token expired"


class NotYetValid(AuthenticationFailure):
    default_reason = "Token not yet valid"


class AuthorizationFailure(ChatError):
    default_reason = "Not authorized"


class NotFound(ChatError):
    default_reason = "Not found"


class PartnerNotFound(NotFound):
    default_reason = "Chat partner not found"


class OwnershipViolation(ChatError):
    default_reason = "Only the author can change this message"


class PersistenceFailure(ChatError):
    default_reason = "Storage error"


class InvalidPayload(ChatError):
    default_reason = "Invalid payload"
