"""Build-validation oracle: does the project still build?"""

from __future__ import annotations

import logging
import shlex
import signal
import subprocess
from pathlib import Path
from typing import Callable, Protocol, Sequence

from cargo_features.core.errors import OracleUnavailable

logger = logging.getLogger(__name__)

DEFAULT_CHECK_COMMAND = ("cargo", "check")


class BuildOracle(Protocol):
    def check(self) -> bool:
        ...


def _signal_name(number: int) -> str:
    try:
        return signal.Signals(number).name
    except ValueError:
        return str(number)


class CommandOracle:
    """Run a check command; exit status zero means the build is fine.

    The command runs in its own session so a Ctrl-C in the terminal reaches
    only this process, which can then stop at the next safe point instead of
    leaving the build killed mid-trial.
    """

    def __init__(
        self,
        command: Sequence[str] = DEFAULT_CHECK_COMMAND,
        cwd: Path | None = None,
        timeout: float | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        if not command:
            raise OracleUnavailable("No check command configured")
        self.command = list(command)
        self.cwd = cwd
        self.timeout = timeout
        self._runner = runner

    @property
    def display_command(self) -> str:
        return shlex.join(self.command)

    def check(self) -> bool:
        logger.debug("running %s in %s", self.display_command, self.cwd or Path.cwd())
        try:
            completed = self._runner(
                self.command,
                cwd=str(self.cwd) if self.cwd else None,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=False,
                timeout=self.timeout,
                start_new_session=True,
            )
        except subprocess.TimeoutExpired as exc:
            raise OracleUnavailable(f"Could not check: {self.display_command} timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise OracleUnavailable(f"Could not check: failed to run {self.display_command}: {exc}") from exc

        if completed.returncode is None or completed.returncode < 0:
            reason = "no exit status" if completed.returncode is None else f"signal {_signal_name(-completed.returncode)}"
            raise OracleUnavailable(f"Could not check: {self.display_command} ended with {reason}")

        logger.debug("%s exited with %s", self.display_command, completed.returncode)
        if completed.returncode != 0 and completed.stderr:
            logger.debug("check output:\n%s", completed.stderr.strip())
        return completed.returncode == 0


__all__ = ["BuildOracle", "CommandOracle", "DEFAULT_CHECK_COMMAND"]
