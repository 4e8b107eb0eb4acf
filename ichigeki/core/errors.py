"""
Error taxonomy for the execution guard.

Pre-execution errors (nothing was run):
- ConfigError, DateMismatchError, AlreadyExistsError,
  DestinationCheckError, CancelledError, PromptError, DestinationOpenError

Execution errors (transcript already opened):
- ScriptError wraps the script's own failure
- UploadError is raised by a streaming destination on the next write or on close
"""

from datetime import date
from typing import Optional


class IchigekiError(Exception):
    """Base class for every error raised by the guard."""

    pass


class ConfigError(IchigekiError):
    """Raised when the guard cannot be validated."""

    pass


class TemplateError(ConfigError):
    """Raised when the default name template cannot be rendered."""

    pass


class DateMismatchError(IchigekiError):
    """Raised when the scheduled execution date is not today."""

    def __init__(self, scheduled: date, today: date):
        self.scheduled = scheduled
        self.today = today
        super().__init__(
            f"exec_date: {scheduled.isoformat()} is not today! "
            f"(today: {today.isoformat()})"
        )


class DestinationError(IchigekiError):
    """Base class for failures attributable to a log destination."""

    def __init__(self, location: str, message: str, cause: Optional[BaseException] = None):
        self.location = location
        self.cause = cause
        super().__init__(message)


class AlreadyExistsError(DestinationError):
    """Raised when an execution log already exists for this run."""

    def __init__(self, location: str):
        super().__init__(
            location,
            f"Can't execute! Execution log destination [{location}] already exists",
        )


class DestinationCheckError(DestinationError):
    """Raised when the existence check itself fails."""

    def __init__(self, location: str, cause: BaseException):
        super().__init__(
            location,
            f"Can't execute! Execution log destination [{location}] check failed: {cause}",
            cause,
        )


class DestinationOpenError(DestinationError):
    """Raised when the destination cannot allocate its streams."""

    def __init__(self, location: str, cause: BaseException):
        super().__init__(
            location,
            f"Can't execute! Execution log destination [{location}] initialize failed: {cause}",
            cause,
        )


class UploadError(DestinationError):
    """Raised when the background upload of a streaming destination failed."""

    def __init__(self, location: str, cause: BaseException):
        super().__init__(location, f"upload to [{location}] failed: {cause}", cause)


class CancelledError(IchigekiError):
    """Raised when the operator declines the confirmation prompt."""

    def __init__(self, message: str = "canceled."):
        super().__init__(message)


class PromptError(IchigekiError):
    """Raised when the confirmation answer cannot be read."""

    pass


class ScriptError(IchigekiError):
    """Raised when the wrapped script fails after the transcript was opened."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(str(cause) or type(cause).__name__)
