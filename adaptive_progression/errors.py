"""Exceptions raised by the progression engine."""


class ProgressionError(Exception):
    """Base class for engine errors."""
    pass


class StoreError(ProgressionError):
    """A read or write against the persistence store failed."""
    pass


class SelectionNotSavedError(ProgressionError):
    """A daily drill selection was computed but could not be cached."""

    def __init__(self, message: str, selection):
        super().__init__(message)
        self.selection = selection


class SessionNotSavedError(ProgressionError):
    """A speed session could not be recorded."""

    def __init__(self, message: str, outcome=None):
        super().__init__(message)
        self.outcome = outcome


class GoalsNotSavedError(ProgressionError):
    """A session was recorded but the updated speed goals were not."""

    def __init__(self, message: str, outcome):
        super().__init__(message)
        self.outcome = outcome


class ReportNotSavedError(ProgressionError):
    """A regulation report was computed but could not be persisted."""

    def __init__(self, message: str, report):
        super().__init__(message)
        self.report = report


class NarrativeError(ProgressionError):
    """The text-generation collaborator failed or is not configured."""
    pass
