"""
Command runner - the script used by the CLI.

Spawns the command with inherited stdin and pumps its stdout/stderr into
the guard's writers, one thread per stream.
"""

import logging
import os
import subprocess
import threading
from typing import BinaryIO, Dict, List, Optional

from ichigeki import __version__

logger = logging.getLogger(__name__)

EXECUTION_ENV_VAR = "ICHIGEKI_EXECUTION_ENV"
PUMP_CHUNK_SIZE = 4096


class CommandError(Exception):
    """Raised when the wrapped command cannot start or exits non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        self.returncode = returncode
        super().__init__(f"command runtime error: {message}")


def _pump(source: BinaryIO, sink, errors: List[Exception]) -> None:
    for chunk in iter(lambda: source.read1(PUMP_CHUNK_SIZE), b""):
        if errors:
            # keep draining so the child never blocks on a full pipe
            continue
        try:
            sink.write(chunk)
        except Exception as e:
            errors.append(e)


class CommandScript:
    """Callable script running ``args`` as a child process."""

    def __init__(self, args: List[str], env: Optional[Dict[str, str]] = None):
        if not args:
            raise ValueError("command args are required")
        self.args = list(args)
        self.env = dict(os.environ if env is None else env)
        self.env[EXECUTION_ENV_VAR] = f"ichigeki {__version__}"
        self.process: Optional[subprocess.Popen] = None

    def __call__(self, ctx, stdout, stderr) -> None:
        try:
            self.process = subprocess.Popen(
                self.args,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=self.env,
            )
        except OSError as e:
            raise CommandError(str(e)) from e

        errors: List[Exception] = []
        pumps = [
            threading.Thread(target=_pump, args=(self.process.stdout, stdout, errors), daemon=True),
            threading.Thread(target=_pump, args=(self.process.stderr, stderr, errors), daemon=True),
        ]
        for pump in pumps:
            pump.start()
        try:
            returncode = self.process.wait()
        except BaseException:
            self.terminate()
            raise
        finally:
            for pump in pumps:
                pump.join()
        logger.debug(f"{self.args[0]} exited with status {returncode}")
        if errors:
            raise errors[0]
        if returncode != 0:
            raise CommandError(f"exit status {returncode}", returncode)

    def terminate(self) -> None:
        """Ask the running child, if any, to stop."""
        if self.process is not None and self.process.poll() is None:
            self.process.terminate()


def command_script(args: List[str], env: Optional[Dict[str, str]] = None) -> CommandScript:
    return CommandScript(args, env)
