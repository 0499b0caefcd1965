"""Errors raised while configuring, listing and reporting test runs."""

from __future__ import annotations

import os
from collections.abc import Iterable


class ConfigParseError(Exception):
    """The configuration file could not be read or parsed."""

    def __init__(
        self, config_file: str | os.PathLike[str], error: BaseException | None = None
    ) -> None:
        self.config_file = os.fspath(config_file)
        self.error = error
        super().__init__(f"failed to parse nextest config at `{self.config_file}`")
        if error is not None:
            self.__cause__ = error


class ProfileNotFound(Exception):
    """A profile was requested that the configuration does not define."""

    def __init__(self, profile: str, all_profiles: Iterable[str]) -> None:
        self.profile = str(profile)
        self.all_profiles = sorted(str(name) for name in all_profiles)
        super().__init__(
            f"profile '{self.profile}' not found "
            f"(known profiles: {', '.join(self.all_profiles)})"
        )


class PartitionerBuilderParseError(ValueError):
    """A partition specification such as ``hash:1/2`` could not be parsed."""

    def __init__(self, expected_format: str | None, message: str) -> None:
        self.expected_format = expected_format
        self.message = message
        if expected_format is None:
            text = message
        else:
            text = f'partition must be in the format "{expected_format}":\n{message}'
        super().__init__(text)


class ParseTestListError(Exception):
    """An error that occurs while gathering or parsing a test list."""


class ParseTestListCommandError(ParseTestListError):
    """Running the command that lists tests failed."""

    def __init__(self, command: str, error: BaseException) -> None:
        self.command = command
        self.error = error
        super().__init__(f"running '{command}' failed")
        self.__cause__ = error


class ParseTestListLineError(ParseTestListError):
    """A line of the test list output could not be parsed."""

    def __init__(self, message: str, full_output: str) -> None:
        self.message = message
        self.full_output = full_output
        super().__init__(f"{message}\nfull output:\n{full_output}")


class WriteTestListError(Exception):
    """Writing the test list to its output failed.

    ``serializing`` is true when the failure happened while producing JSON.
    """

    def __init__(self, error: BaseException, *, serializing: bool = False) -> None:
        self.error = error
        self.serializing = serializing
        super().__init__(
            "error serializing to JSON" if serializing else "error writing to output"
        )
        self.__cause__ = error


class WriteEventError(Exception):
    """Writing a test event failed.

    With no ``file`` the failure was in writing to the output stream. With a
    ``file`` it was a file system operation on that path, or, when ``junit``
    is set, producing the JUnit report at that path.
    """

    def __init__(
        self,
        error: BaseException,
        file: str | os.PathLike[str] | None = None,
        *,
        junit: bool = False,
    ) -> None:
        if junit and file is None:
            raise ValueError("a JUnit write error needs the path of the report")
        self.error = error
        self.file = None if file is None else os.fspath(file)
        self.junit = junit
        if self.file is None:
            text = "error writing to output"
        elif junit:
            text = f"error writing JUnit output to {self.file}"
        else:
            text = f"error operating on path {self.file}"
        super().__init__(text)
        self.__cause__ = error