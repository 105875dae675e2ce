"""Exceptions raised by aichat-assistant."""


class StorageError(Exception):
    """The local chat database could not be read or written."""


class OpenError(StorageError):
    """The local chat database could not be opened, created or upgraded."""


class ChatAPIError(Exception):
    """The remote text-generation service failed or returned an error."""


class PlanParseError(Exception):
    """A plan response was not a valid JSON plan."""


class StepExecutionError(Exception):
    """A plan step's action failed. Captured into the step as ``failed``."""


class PlanStateError(Exception):
    """An operation is not valid for the step's current status."""


class AttachmentError(ValueError):
    """A file cannot be attached to a message."""


class SessionNotFoundError(LookupError):
    """No chat session exists with the given id."""
