class MessagingError(Exception):
    """Base class for errors raised by the messaging core."""


class InvalidParticipant(MessagingError, ValueError):
    pass


class EmptyContent(MessagingError, ValueError):
    pass


class StoreUnavailable(MessagingError):
    """The conversation store could not be reached or rejected the operation."""
