"""Expected failures of the command, each with a documented exit code."""

from __future__ import annotations

import logging
import shlex
import sys
from collections.abc import Iterable

from nexrun.errors import ConfigParseError, ProfileNotFound
from nexrun.metadata import NextestExitCode
from nexrun.output import LOGGER_NAME, NO_HEADING_LOGGER, colors_enabled

_logger = logging.getLogger(LOGGER_NAME)
_no_heading = logging.getLogger(NO_HEADING_LOGGER)


def _bold(text: str) -> str:
    if colors_enabled(sys.stderr):
        return f"\x1b[1m{text}\x1b[0m"
    return text


class ExpectedError(Exception):
    """A failure in a program that was run, rather than in this tool itself."""

    _exit_code: NextestExitCode

    def process_exit_code(self) -> int:
        """Return the exit code for the process."""
        return int(self._exit_code)

    def _report(self) -> BaseException | None:
        """Log the main message and return the first underlying error, if any."""
        return None

    def display_to_stderr(self) -> None:
        """Log this error and the chain of errors that caused it."""
        next_error = self._report()
        while next_error is not None:
            _no_heading.error("\nCaused by:\n  %s", next_error)
            next_error = next_error.__cause__


class CargoMetadataFailed(ExpectedError):
    """Running ``cargo metadata`` failed; its own output says why."""

    _exit_code = NextestExitCode.CARGO_METADATA_FAILED

    def __init__(self) -> None:
        super().__init__("cargo metadata failed")


class ProfileNotFoundError(ExpectedError):
    """The requested profile does not exist."""

    _exit_code = NextestExitCode.SETUP_ERROR

    def __init__(self, err: ProfileNotFound) -> None:
        self.err = err
        super().__init__("profile not found")

    def _report(self) -> BaseException | None:
        _logger.error("%s", self.err)
        return self.err.__cause__


class ConfigReadError(ExpectedError):
    """The configuration could not be read."""

    _exit_code = NextestExitCode.SETUP_ERROR

    def __init__(self, err: ConfigParseError) -> None:
        self.err = err
        super().__init__("config read error")

    def _report(self) -> BaseException | None:
        _logger.error("%s", self.err)
        return self.err.__cause__


class BuildFailed(ExpectedError):
    """Building the tests failed."""

    _exit_code = NextestExitCode.BUILD_FAILED

    def __init__(self, command: Iterable[str], exit_code: int | None) -> None:
        self.escaped_command = [shlex.quote(str(arg)) for arg in command]
        self.exit_code = exit_code
        super().__init__("build failed")

    def _report(self) -> BaseException | None:
        with_code = "" if self.exit_code is None else f" with code {_bold(str(self.exit_code))}"
        _logger.error("command %s exited%s", _bold(" ".join(self.escaped_command)), with_code)
        return None


class TestRunFailed(ExpectedError):
    """One or more tests failed."""

    __test__ = False
    _exit_code = NextestExitCode.TEST_RUN_FAILED

    def __init__(self) -> None:
        super().__init__("test run failed")

    def _report(self) -> BaseException | None:
        _logger.error("test run failed")
        return None