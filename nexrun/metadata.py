"""Machine-readable test list output and the command that produces it.

Covers the JSON document written by ``cargo nextest list --format=json``,
the exit codes documented for expected failures, and a small builder that
runs the list command and parses its output.
"""

from __future__ import annotations

import enum
import json
import os
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


class NextestExitCode(enum.IntEnum):
    """Documented exit codes for expected ``cargo nextest`` failures.

    Unknown or unexpected failures always result in exit code 1.
    """

    CARGO_METADATA_FAILED = 102
    """Running ``cargo metadata`` produced an error."""

    BUILD_FAILED = 101
    """Building tests produced an error."""

    TEST_RUN_FAILED = 100
    """One or more tests failed."""

    SETUP_ERROR = 96
    """A user issue happened while setting up a nextest invocation."""


class CommandError(Exception):
    """An error that occurs while running a ``cargo nextest`` command."""


class CommandExecError(CommandError):
    """Executing the process failed; the underlying error is the cause."""

    def __init__(self) -> None:
        super().__init__("`cargo nextest` process execution failed")


class CommandFailedError(CommandError):
    """The command exited with a non-zero code."""

    def __init__(self, exit_code: int | None, stderr: bytes) -> None:
        self.exit_code = exit_code
        self.stderr = stderr
        exit_code_str = "" if exit_code is None else f" with exit code {exit_code}"
        stderr_text = stderr.decode("utf-8", errors="replace")
        super().__init__(f"`cargo nextest` failed{exit_code_str}, stderr:\n{stderr_text}\n")


class CommandJsonError(CommandError):
    """Parsing the JSON output failed; the underlying error is the cause."""

    def __init__(self) -> None:
        super().__init__("parsing `cargo nextest` JSON output failed")


class MismatchReason(enum.Enum):
    """Why a test does not match a filter."""

    IGNORED = "ignored"
    STRING = "string"
    PARTITION = "partition"

    def __str__(self) -> str:
        return _MISMATCH_DESCRIPTIONS[self]


_MISMATCH_DESCRIPTIONS = {
    MismatchReason.IGNORED: "does not match the run-ignored option",
    MismatchReason.STRING: "does not match the provided string filters",
    MismatchReason.PARTITION: "is in a different partition",
}


def _expect_mapping(data: object, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"invalid type for {what}: expected an object")
    return data


def _field(data: Mapping[str, Any], key: str, kind: type, what: str) -> Any:
    if key not in data:
        raise ValueError(f"missing field `{key}` in {what}")
    value = data[key]
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"invalid value for `{key}` in {what}: expected a non-negative integer")
    elif not isinstance(value, kind):
        raise ValueError(f"invalid type for `{key}` in {what}: expected {kind.__name__}")
    return value


@dataclass(frozen=True)
class FilterMatch:
    """Whether a test matches a filter; ``reason`` is set when it does not."""

    reason: MismatchReason | None = None

    @classmethod
    def matches(cls) -> FilterMatch:
        return cls()

    @classmethod
    def mismatch(cls, reason: MismatchReason) -> FilterMatch:
        return cls(reason=reason)

    def is_match(self) -> bool:
        """Return True if the test matches the filter."""
        return self.reason is None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FilterMatch:
        data = _expect_mapping(data, "filter-match")
        status = _field(data, "status", str, "filter-match")
        if status == "matches":
            return cls.matches()
        if status == "mismatch":
            reason = _field(data, "reason", str, "filter-match")
            try:
                return cls.mismatch(MismatchReason(reason))
            except ValueError:
                raise ValueError(f"unknown mismatch reason `{reason}`") from None
        raise ValueError(f"unknown filter-match status `{status}`")

    def to_dict(self) -> dict[str, Any]:
        if self.reason is None:
            return {"status": "matches"}
        return {"status": "mismatch", "reason": self.reason.value}


@dataclass
class RustTestCaseSummary:
    """Information about one test case within a test binary."""

    __test__ = False

    ignored: bool
    filter_match: FilterMatch

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RustTestCaseSummary:
        data = _expect_mapping(data, "test case")
        return cls(
            ignored=_field(data, "ignored", bool, "test case"),
            filter_match=FilterMatch.from_dict(_field(data, "filter-match", Mapping, "test case")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"ignored": self.ignored, "filter-match": self.filter_match.to_dict()}


@dataclass
class RustTestSuiteSummary:
    """A suite of tests within one test binary."""

    __test__ = False

    package_name: str
    binary_name: str
    package_id: str
    binary_path: str
    cwd: str
    testcases: dict[str, RustTestCaseSummary] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RustTestSuiteSummary:
        what = "test suite"
        data = _expect_mapping(data, what)
        testcases = _field(data, "testcases", Mapping, what)
        return cls(
            package_name=_field(data, "package-name", str, what),
            binary_name=_field(data, "binary-name", str, what),
            package_id=_field(data, "package-id", str, what),
            binary_path=_field(data, "binary-path", str, what),
            cwd=_field(data, "cwd", str, what),
            testcases={
                name: RustTestCaseSummary.from_dict(case)
                for name, case in sorted(testcases.items())
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "package-name": self.package_name,
            "binary-name": self.binary_name,
            "package-id": self.package_id,
            "binary-path": self.binary_path,
            "cwd": self.cwd,
            "testcases": {
                name: case.to_dict() for name, case in sorted(self.testcases.items())
            },
        }


@dataclass
class TestListSummary:
    """Root of the serializable list of tests."""

    __test__ = False

    test_count: int = 0
    rust_suites: dict[str, RustTestSuiteSummary] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TestListSummary:
        what = "test list"
        data = _expect_mapping(data, what)
        suites = _field(data, "rust-suites", Mapping, what)
        return cls(
            test_count=_field(data, "test-count", int, what),
            rust_suites={
                name: RustTestSuiteSummary.from_dict(suite)
                for name, suite in sorted(suites.items())
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "test-count": self.test_count,
            "rust-suites": {
                name: suite.to_dict() for name, suite in sorted(self.rust_suites.items())
            },
        }

    @classmethod
    def parse_json(cls, json_text: str | bytes) -> TestListSummary:
        """Parse the output of ``cargo nextest list --format json``.

        Raises ValueError if the text is not valid JSON or has the wrong shape.
        """
        return cls.from_dict(json.loads(json_text))

    def to_json(self) -> str:
        """Serialize to compact JSON."""
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


class ListCommand:
    """Builder for running ``cargo nextest list``."""

    def __init__(self) -> None:
        self._cargo_path: str | None = None
        self._manifest_path: str | None = None
        self._current_dir: str | None = None
        self._args: list[str] = []

    def cargo_path(self, path: str | os.PathLike[str]) -> ListCommand:
        """Set the cargo executable; defaults to ``$CARGO``, then ``cargo``."""
        self._cargo_path = os.fspath(path)
        return self

    def manifest_path(self, path: str | os.PathLike[str]) -> ListCommand:
        """Set the path to ``Cargo.toml``."""
        self._manifest_path = os.fspath(path)
        return self

    def current_dir(self, path: str | os.PathLike[str]) -> ListCommand:
        """Set the working directory of the process."""
        self._current_dir = os.fspath(path)
        return self

    def add_arg(self, arg: str) -> ListCommand:
        """Append an argument after ``cargo nextest list``."""
        self._args.append(str(arg))
        return self

    def add_args(self, args: Iterable[str]) -> ListCommand:
        """Append several arguments after ``cargo nextest list``."""
        for arg in args:
            self.add_arg(arg)
        return self

    def cargo_command(self) -> list[str]:
        """Return the command line that :meth:`exec` runs."""
        if self._cargo_path is not None:
            cargo = self._cargo_path
        else:
            cargo = os.environ.get("CARGO", "cargo")
        command = [cargo]
        if self._manifest_path is not None:
            command += ["--manifest-path", self._manifest_path]
        command += ["nextest", "list", "--format=json"]
        command += self._args
        return command

    def exec(self) -> TestListSummary:
        """Run the command and parse its output into a :class:`TestListSummary`."""
        try:
            completed = subprocess.run(
                self.cargo_command(),
                cwd=self._current_dir,
                capture_output=True,
                check=False,
            )
        except OSError as err:
            raise CommandExecError() from err

        if completed.returncode != 0:
            exit_code = completed.returncode if completed.returncode > 0 else None
            raise CommandFailedError(exit_code, completed.stderr)

        try:
            return TestListSummary.parse_json(completed.stdout)
        except ValueError as err:
            raise CommandJsonError() from err