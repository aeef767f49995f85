"""Exception taxonomy for the step-work SDK.

Caller errors subclass ``ValueError`` so they are handled by the server's
global ``ValueError`` handler; configuration errors subclass
``RuntimeError`` because they indicate a broken deployment rather than a
bad request.
"""


class InvalidStep(ValueError):
    """The step identifier is not one of the supported steps."""


class StepAlreadyComplete(ValueError):
    """An answer was submitted after the step had already been completed."""


class HistoryMismatch(ValueError):
    """Persisted history does not line up with the current question script."""


class SessionNotFound(ValueError):
    """No walk session exists with the given id."""


class SessionForbidden(PermissionError):
    """The walk session belongs to a different user."""


class ScriptConfigError(RuntimeError):
    """The question script violates one of its structural invariants."""


class EmptyStep(ScriptConfigError):
    """A supported step has no active questions."""
