"""
Messaging error taxonomy.

Services raise these; the API layer renders them as
``{"error": kind, "detail": message}`` with the matching status code.
"""

from __future__ import annotations

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)


class MessagingError(Exception):
    kind = "internal"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(MessagingError):
    kind = "unauthenticated"
    status_code = 401
    default_message = "Invalid or missing token"


class SelfConversation(MessagingError):
    kind = "self_conversation"
    status_code = 400
    default_message = "Cannot start a conversation with yourself"


class NotParticipant(MessagingError):
    kind = "not_participant"
    status_code = 403
    default_message = "Not a participant of this conversation"


class NotFound(MessagingError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found"


class IntegrityFault(MessagingError):
    kind = "integrity_fault"
    status_code = 500
    default_message = "Storage integrity fault"


class StorageUnavailable(MessagingError):
    kind = "storage_unavailable"
    status_code = 503
    default_message = "Storage temporarily unavailable"


def translate_storage_error(exc: SQLAlchemyError) -> MessagingError:
    if isinstance(exc, IntegrityError):
        return IntegrityFault(f"Integrity error: {exc.orig}")
    if isinstance(exc, (OperationalError, InterfaceError)):
        return StorageUnavailable()
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StorageUnavailable()
    return IntegrityFault(str(exc))