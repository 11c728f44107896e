"""
Exception hierarchy for the Clerkship Scheduler.

Business outcomes (no capacity, unmet days, invalid teams) are returned as
values. These exceptions are for broken inputs and misuse of the API.
"""


class SchedulerError(Exception):
    """Base exception class for the scheduler."""
    pass


class ConfigurationError(SchedulerError):
    """Raised when a configuration map is malformed."""
    pass


class UnknownEntityError(SchedulerError):
    """Raised when an assignment references a student, preceptor or clerkship the context does not know."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"Unknown {kind}: {entity_id}")
