"""
Execution Guard - run a destructive command at most once per day

The guard wraps an opaque script callback and enforces, in order:
1. Validation: defaults filled in, configuration errors raised early
2. Date check: the scheduled execution date must be today
3. Existence check: no transcript may already exist at the destination
4. Confirmation: the operator must answer y/yes (when enabled)
5. Run: header, script output teed to destination and terminal, footer,
   destination always released

Interruption handling:
- KeyboardInterrupt/SystemExit raised before the script completed is
  re-raised unmodified, after the footer is written and the destination closed
- once the script completed, faults while writing the footer or closing the
  destination are logged and suppressed; DestinationError subclasses
  (e.g. UploadError) are ordinary failures and still surface
"""

import logging
import sys
import threading
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, BinaryIO, Callable, List, Optional, TextIO, Union

from ichigeki.core.clock import Clock, SystemClock
from ichigeki.core.errors import (
    AlreadyExistsError,
    CancelledError,
    ConfigError,
    DateMismatchError,
    DestinationCheckError,
    DestinationError,
    DestinationOpenError,
    PromptError,
    ScriptError,
)
from ichigeki.core.naming import resolve_name
from ichigeki.core.transcript import ScriptWriter, banner_writer, write_footer, write_header
from ichigeki.service.destinations.base import Destination
from ichigeki.service.destinations.local import LocalDestination

logger = logging.getLogger(__name__)

DEFAULT_DIALOG_MESSAGE = "Do you really execute `%s` ?"


class GuardPhase(Enum):
    """Progress marker for one guard invocation."""

    UNVALIDATED = "unvalidated"
    VALIDATED = "validated"
    RUNNING = "running"
    COMPLETED = "completed"


@dataclass
class RunContext:
    """Context passed to the wrapped script"""

    name: str
    args: List[str]
    exec_date: date


Script = Callable[[RunContext, ScriptWriter, ScriptWriter], Any]


def _result_failure(result: Any) -> Optional[ScriptError]:
    """Only an explicit False reports failure; other return values are ignored."""
    if result is False:
        return ScriptError(RuntimeError("script reported failure"))
    return None


class ExecutionGuard:
    """
    Guards one invocation of a script.

    Usage:
        def script(ctx, stdout, stderr):
            stdout.write("run!")

        guard = ExecutionGuard(script=script, confirm_dialog=False)
        guard.run()
    """

    def __init__(
        self,
        script: Optional[Script] = None,
        name: str = "",
        args: Optional[List[str]] = None,
        exec_date: Optional[Union[date, datetime]] = None,
        confirm_dialog: Optional[bool] = None,
        destination: Optional[Destination] = None,
        dialog_message: str = "",
        default_name_template: str = "",
        prompt_input: Optional[TextIO] = None,
        clock: Optional[Clock] = None,
        stdout: Optional[BinaryIO] = None,
        stderr: Optional[BinaryIO] = None,
    ):
        self.script = script
        self.name = name
        self.args = args
        self.exec_date = exec_date
        self.confirm_dialog = confirm_dialog
        self.destination = destination
        self.dialog_message = dialog_message
        self.default_name_template = default_name_template
        self.prompt_input = prompt_input
        self.clock = clock or SystemClock()
        self.stdout = stdout
        self.stderr = stderr

        self.phase = GuardPhase.UNVALIDATED

    def validate(self) -> None:
        """Fill in defaults. Raises ConfigError on invalid configuration."""
        if self.script is None:
            raise ConfigError("Script is required")
        if self.args is None:
            self.args = list(sys.argv)

        if self.exec_date is None:
            self.exec_date = self.clock.today()
        elif isinstance(self.exec_date, datetime):
            self.exec_date = self.exec_date.astimezone().date()

        if not self.name:
            if not self.args:
                raise ConfigError("no arguments")
            self.name = resolve_name(
                self.args,
                exec_date=self.exec_date,
                today=self.clock.today(),
                template=self.default_name_template,
            )

        if self.confirm_dialog is None:
            self.confirm_dialog = True
        if self.destination is None:
            self.destination = LocalDestination()
            logger.warning("destination is not specified. use default LocalDestination")
        self.destination.set_name(self.name)

        if not self.dialog_message:
            self.dialog_message = DEFAULT_DIALOG_MESSAGE
        count = self.dialog_message.count("%s")
        if count != 1:
            raise ConfigError(
                "dialog_message must always contain one string format specifier %s: "
                f"string format specifier count is {count}"
            )

        if self.prompt_input is None:
            self.prompt_input = sys.stdin
        if self.stdout is None:
            self.stdout = sys.stdout.buffer
        if self.stderr is None:
            self.stderr = sys.stderr.buffer

        self.phase = GuardPhase.VALIDATED

    def run(self) -> None:
        """
        Run the guarded script.

        Raises:
            ConfigError, DateMismatchError, AlreadyExistsError,
            DestinationCheckError, CancelledError, PromptError: nothing ran
            DestinationOpenError: nothing ran
            ScriptError: the script failed, transcript records the error
            UploadError: a streaming destination failed to upload
        """
        self.validate()

        today = self.clock.today()
        if self.exec_date != today:
            raise DateMismatchError(self.exec_date, today)

        location = self.destination.location
        try:
            exists = self.destination.exists()
        except DestinationCheckError:
            raise
        except Exception as e:
            raise DestinationCheckError(location, e) from e
        if exists:
            raise AlreadyExistsError(location)

        logger.info(f"log output to `{location}`")
        if self.confirm_dialog:
            self._confirm()

        self._running()

    def _confirm(self) -> None:
        message = self.dialog_message.replace("%s", self.name, 1)
        self.stderr.write(f"{message} [y/n]:".encode("utf-8"))
        self.stderr.flush()
        try:
            response = self.prompt_input.readline()
        except (OSError, ValueError) as e:
            raise PromptError(f"prompt error: {e}") from e
        if not response:
            raise PromptError("prompt error: EOF")
        if response.strip().lower() not in ("y", "yes"):
            raise CancelledError()

    def _running(self) -> None:
        location = self.destination.location
        try:
            stdout, stderr = self.destination.open()
        except Exception as e:
            self._release_after_failed_open()
            if isinstance(e, DestinationOpenError):
                raise
            raise DestinationOpenError(location, e) from e

        banner = banner_writer(stdout, stderr)

        lock = threading.Lock()
        ctx = RunContext(name=self.name, args=list(self.args), exec_date=self.exec_date)
        script_stdout = ScriptWriter(stdout, self.stdout, lock)
        script_stderr = ScriptWriter(stderr, self.stderr, lock)

        self.phase = GuardPhase.RUNNING
        error: Optional[ScriptError] = None
        try:
            write_header(banner, self.name, self.clock.now())
            try:
                result = self.script(ctx, script_stdout, script_stderr)
            except Exception as e:
                error = ScriptError(e)
            else:
                error = _result_failure(result)
            if error is None:
                self.stderr.write(b"\n")
                self.stderr.flush()
                self.phase = GuardPhase.COMPLETED
        except BaseException:
            logger.info("script is not complete, but interrupted")
            self._finish(banner, None, interrupted=True)
            raise

        self._finish(banner, error)
        if error is not None:
            raise error from error.cause

    def _release_after_failed_open(self) -> None:
        # A composite may have opened some members before failing.
        try:
            self.destination.close()
        except Exception as e:
            logger.error(f"cleanup of {self.destination.location} failed: {e}")

    def _finish(self, banner, error: Optional[ScriptError], interrupted: bool = False) -> None:
        faults: List[BaseException] = []
        try:
            write_footer(banner, self.clock.now(), error)
        except BaseException as e:  # classified below
            faults.append(e)
        try:
            self.destination.close()
        except BaseException as e:  # classified below
            faults.append(e)
        if not faults:
            return

        fault = faults[0]
        if interrupted or error is not None:
            logger.error(f"release of {self.destination.location} failed: {fault}")
            return
        if self.phase is GuardPhase.COMPLETED and not isinstance(fault, DestinationError):
            logger.error(f"{fault!r}")
            return
        raise fault
