"""
Guard core: state machine, errors, clock, transcript framing and naming.
"""

from .clock import Clock, FixedClock, SystemClock
from .errors import (
    AlreadyExistsError,
    CancelledError,
    ConfigError,
    DateMismatchError,
    DestinationCheckError,
    DestinationError,
    DestinationOpenError,
    IchigekiError,
    PromptError,
    ScriptError,
    TemplateError,
    UploadError,
)
from .guard import ExecutionGuard, GuardPhase, RunContext

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "AlreadyExistsError",
    "CancelledError",
    "ConfigError",
    "DateMismatchError",
    "DestinationCheckError",
    "DestinationError",
    "DestinationOpenError",
    "IchigekiError",
    "PromptError",
    "ScriptError",
    "TemplateError",
    "UploadError",
    "ExecutionGuard",
    "GuardPhase",
    "RunContext",
]
