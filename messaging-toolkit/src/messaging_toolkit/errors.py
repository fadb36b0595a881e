"""
Error taxonomy shared by the stores, services and the HTTP binding.

Store mutations on absent entities are silent no-ops and never raise these.
Services raise 'NotFoundError', 'UnauthorizedError' and 'InvalidOperationError'
for domain failures and wrap anything unexpected (I/O errors, expired
deadlines) into 'OperationFailedError' after logging it.
"""


class MessagingError(Exception):
    """Base class for every error raised by the messaging services."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(MessagingError):
    """The entity does not exist or is hidden by a soft delete."""


class UnauthorizedError(MessagingError):
    """The caller is not a participant of the conversation or not the sender of the message."""


class InvalidOperationError(MessagingError):
    """The request is structurally invalid, e.g. a reply target from another conversation."""


class OperationFailedError(MessagingError):
    """An unexpected failure, surfaced to callers without leaking internals."""

    def __init__(self, operation: str, entity_id: str | None = None) -> None:
        target = f" for {entity_id}" if entity_id else ""
        super().__init__(f"Operation '{operation}' failed{target}")
        self.operation = operation
        self.entity_id = entity_id
