from __future__ import annotations


class SchedulerError(Exception):
    """Base class for every error raised by the scheduler."""


class InvalidScheduleError(SchedulerError):
    """A cron expression could not be parsed."""

    def __init__(self, expression: str, reason: str = ""):
        self.expression = expression
        message = f"Invalid cron expression {expression!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InvalidTimezoneError(SchedulerError):
    """A timezone name is not in the timezone database."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown timezone {name!r}")


class DuplicateJobError(SchedulerError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"A job named {name!r} is already registered")


class RegistrationClosedError(SchedulerError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cannot register {name!r}: scheduler already started")


class UnknownJobError(SchedulerError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No job named {name!r} is registered")


class SchedulerAlreadyRunningError(SchedulerError):
    def __init__(self):
        super().__init__("Scheduler has already been started")


class SignalSetupError(SchedulerError):
    """Shutdown signal handlers could not be installed."""


class JobError(Exception):
    """A job reported that its unit of work failed."""
