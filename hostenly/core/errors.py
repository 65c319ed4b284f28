"""Domain exceptions raised across the messaging pipeline and its stores."""


class HostenlyError(Exception):
    """Base class for Hostenly errors."""


class PropertyNotFoundError(HostenlyError):
    """No property matches the given id or channel address."""


class ConversationNotFoundError(HostenlyError):
    """No conversation matches the given id."""


class ConversationConflictError(HostenlyError):
    """A conversation for (property, guest address) already exists."""


class PersistenceError(HostenlyError):
    """The durable store rejected or failed a write."""


class CompletionError(HostenlyError):
    """The completion provider failed or returned no usable text."""


class TransportError(HostenlyError):
    """The messaging transport rejected or failed to deliver a message."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
