"""A small harness for data-driven tests.

Each requirement pairs a test function with a directory and a regular
expression. The function is called once for every matching file under the
directory, and the results are reported in a libtest-like format.
"""

from __future__ import annotations

import argparse
import enum
import functools
import os
import queue
import re
import sys
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from operator import attrgetter
from pathlib import Path
from typing import TextIO

THREADS_ENV = "DATATEST_THREADS"
DEFAULT_THREADS = "32"
FAILURE_EXIT_CODE = 101

_GREEN = "32"
_RED = "31"


class Format(enum.Enum):
    """Output format for the harness."""

    PRETTY = "pretty"
    TERSE = "terse"
    JSON = "json"


@dataclass
class TestOptions:
    """Command-line options understood by the harness.

    Most options exist only to stay compatible with the command line of the
    standard test harness and have no effect.
    """

    __test__ = False

    filter: str | None = None
    filter_exact: bool = False
    test_threads: int = int(DEFAULT_THREADS)
    quiet: bool = False
    nocapture: bool = False
    list_tests: bool = False
    ignored: bool = False
    include_ignored: bool = False
    force_run_in_process: bool = False
    exclude_should_panic: bool = False
    test: bool = False
    bench: bool = False
    logfile: str | None = None
    skip: list[str] = field(default_factory=list)
    show_output: bool = False
    color: str | None = None
    format: Format = Format.PRETTY
    report_time: str | None = None
    ensure_time: bool = False


@dataclass(frozen=True)
class TestResult:
    """Outcome of a single test; ``message`` is set for failures that carry one."""

    __test__ = False

    passed: bool
    message: str | None = None

    @classmethod
    def ok(cls) -> TestResult:
        return cls(passed=True)

    @classmethod
    def failed(cls, message: str | None = None) -> TestResult:
        return cls(passed=False, message=message)


@dataclass
class Test:
    """A named test case ready to run."""

    __test__ = False

    name: str
    testfn: Callable[[], object]


class TestSummary:
    """Collects results and writes progress and the final summary."""

    __test__ = False

    def __init__(
        self,
        total: int,
        filtered_out: int,
        out: TextIO | None = None,
        color: bool | None = None,
    ) -> None:
        self.out = out if out is not None else sys.stdout
        if color is None:
            isatty = getattr(self.out, "isatty", None)
            color = bool(isatty and isatty()) and "NO_COLOR" not in os.environ
        self.color = color
        self.total = total
        self.filtered_out = filtered_out
        self.passed = 0
        self.failed: list[str] = []

    def _paint(self, text: str, code: str) -> str:
        if self.color:
            return f"\x1b[{code}m{text}\x1b[0m"
        return text

    def _write_ok(self) -> None:
        self.out.write(self._paint("ok", _GREEN))

    def _write_failed(self) -> None:
        self.out.write(self._paint("FAILED", _RED))

    def handle_result(self, name: str, result: TestResult) -> None:
        """Record one result and print its status line."""
        self.out.write(f"test {name} ... ")
        if result.passed:
            self.passed += 1
            self._write_ok()
        else:
            self.failed.append(name)
            self._write_failed()
            if result.message is not None:
                self.out.write("\n")
                self.out.write(f"Error: {result.message}")
        self.out.write("\n")

    def write_starting_msg(self) -> None:
        self.out.write("\n")
        self.out.write(f"running {self.total - self.filtered_out} tests\n")

    def write_summary(self) -> None:
        if self.failed:
            self.out.write("\nfailures:\n")
            for name in self.failed:
                self.out.write(f"    {name}\n")

        self.out.write("\ntest result: ")
        if self.failed:
            self._write_failed()
        else:
            self._write_ok()
        self.out.write(
            f". {self.passed} passed; {len(self.failed)} failed; "
            f"{self.filtered_out} filtered out\n"
        )
        self.out.write("\n")

    def success(self) -> bool:
        return not self.failed


def iterate_directory(path: str | os.PathLike[str]) -> Iterator[Path]:
    """Yield every regular file under ``path``, skipping hidden files.

    Only file names are checked: hidden directories are still descended
    into. Symbolic links are not followed. Entries are yielded in sorted
    order within each directory.
    """
    root = Path(path)
    if root.is_file():
        if not root.name.startswith("."):
            yield root
        return
    yield from _walk(root)


def _walk(directory: Path) -> Iterator[Path]:
    with os.scandir(directory) as scan:
        entries = sorted(scan, key=attrgetter("name"))
    for entry in entries:
        entry_path = directory / entry.name
        if entry.is_dir(follow_symlinks=False):
            yield from _walk(entry_path)
        elif entry.is_file(follow_symlinks=False) and not entry.name.startswith("."):
            yield entry_path


def derive_test_name(
    root: str | os.PathLike[str], path: str | os.PathLike[str], test_name: str
) -> str:
    """Build a test name of the form ``<test_name>::<path relative to root>``."""
    root_path, file_path = Path(root), Path(path)
    try:
        relative = file_path.relative_to(root_path)
    except ValueError:
        raise ValueError(
            f"failed to strip prefix '{root_path}' from path '{file_path}'"
        ) from None
    relative_text = "" if relative == Path(".") else str(relative)
    return f"{test_name}::{relative_text}"


@dataclass
class Requirements:
    """A test function together with where and how to find its input files."""

    test: Callable[[Path], object]
    test_name: str
    root: str
    pattern: str

    def expand(self) -> list[Test]:
        """Create one test per file under ``root`` whose path matches ``pattern``."""
        root = Path(self.root)
        try:
            regex = re.compile(self.pattern)
        except re.error as err:
            raise ValueError(f"invalid regular expression: '{self.pattern}'") from err

        tests = [
            Test(
                name=derive_test_name(root, path, self.test_name),
                testfn=functools.partial(self.test, path),
            )
            for path in iterate_directory(root)
            if regex.search(str(path))
        ]

        # A typo in the pattern should not pass silently.
        if not tests:
            raise ValueError(
                f"no test cases found for test '{self.test_name}'. "
                f"Scanned directory: '{self.root}' with pattern '{self.pattern}'"
            )
        return tests


def _positive_int(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: '{text}'") from None
    if value <= 0:
        raise argparse.ArgumentTypeError("number would be zero for non-zero type")
    return value


def _parse_format(text: str) -> Format:
    try:
        return Format(text.lower())
    except ValueError:
        choices = ", ".join(f.value for f in Format)
        raise argparse.ArgumentTypeError(
            f"invalid format '{text}' (choose from {choices})"
        ) from None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Datatest-harness for running data-driven tests",
        allow_abbrev=False,
    )
    parser.add_argument(
        "filter",
        nargs="?",
        help="only run tests whose names contain this string",
    )
    parser.add_argument(
        "--exact",
        dest="filter_exact",
        action="store_true",
        help="exactly match filters rather than by substring",
    )
    parser.add_argument(
        "--test-threads",
        type=_positive_int,
        default=os.environ.get(THREADS_ENV, DEFAULT_THREADS),
        help="number of threads used for running tests in parallel",
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="output minimal information")
    parser.add_argument("--nocapture", action="store_true", help="no-op")
    parser.add_argument("--list", dest="list_tests", action="store_true", help="list all tests")
    parser.add_argument(
        "--ignored",
        action="store_true",
        help="list or run ignored tests (always empty)",
    )
    parser.add_argument("--include-ignored", action="store_true", help="no-op")
    parser.add_argument("--force-run-in-process", action="store_true", help="no-op")
    parser.add_argument("--exclude-should-panic", action="store_true", help="no-op")
    parser.add_argument("--test", action="store_true", help="no-op")
    parser.add_argument("--bench", action="store_true", help="no-op")
    parser.add_argument("--logfile", help="no-op")
    parser.add_argument("--skip", action="append", default=[], help="no-op")
    parser.add_argument("--show-output", action="store_true", help="no-op")
    parser.add_argument("--color", help="no-op")
    parser.add_argument(
        "--format",
        type=_parse_format,
        default=Format.PRETTY,
        help="output format: pretty or terse (json is accepted but unsupported)",
    )
    parser.add_argument("--report-time", help="no-op")
    parser.add_argument("--ensure-time", action="store_true", help="no-op")
    return parser


def parse_options(argv: list[str] | None = None) -> TestOptions:
    """Parse harness options; invalid input exits with status 2."""
    namespace = _build_parser().parse_args(argv)
    return TestOptions(**vars(namespace))


def _run_one(test: Test) -> tuple[str, TestResult]:
    try:
        test.testfn()
    except AssertionError:
        return test.name, TestResult.failed()
    except Exception as exc:  # noqa: BLE001 - any error fails the test
        return test.name, TestResult.failed(repr(exc))
    except BaseException:  # noqa: BLE001 - never leave the collector waiting
        return test.name, TestResult.failed()
    return test.name, TestResult.ok()


def run_tests(options: TestOptions, tests: list[Test], out: TextIO) -> bool:
    """Run ``tests`` according to ``options`` and report to ``out``.

    Returns True when every test that ran passed.
    """
    total = len(tests)
    if options.filter is None:
        matched = list(tests)
        # Unfiltered tests are scheduled from the end of the list.
        schedule = list(reversed(matched))
    else:
        needle = options.filter
        matched = [
            test
            for test in tests
            if (test.name == needle if options.filter_exact else needle in test.name)
        ]
        schedule = matched

    summary = TestSummary(total, total - len(matched), out)
    if not options.quiet:
        summary.write_starting_msg()

    results: queue.Queue[tuple[str, TestResult]] = queue.Queue()
    with ThreadPoolExecutor(max_workers=options.test_threads) as pool:
        for test in schedule:
            pool.submit(lambda t: results.put(_run_one(t)), test)
        for _ in schedule:
            name, result = results.get()
            summary.handle_result(name, result)

    if not options.quiet:
        summary.write_summary()
    return summary.success()


def runner(requirements: list[Requirements], argv: list[str] | None = None) -> int:
    """Expand, filter and run all requirements; return the process exit code."""
    options = parse_options(argv)

    if options.ignored:
        # Tests cannot be marked as ignored, so there is nothing to run.
        tests: list[Test] = []
    else:
        tests = [test for requirement in requirements for test in requirement.expand()]
    tests.sort(key=attrgetter("name"))

    if options.list_tests:
        for test in tests:
            print(f"{test.name}: test")
        if options.format is Format.PRETTY:
            print()
            print(f"{len(tests)} tests, 0 benchmarks")
        return 0

    try:
        passed = run_tests(options, tests, sys.stdout)
    except OSError as exc:
        print(f"error: io error when running tests: {exc!r}", file=sys.stderr)
        return FAILURE_EXIT_CODE
    return 0 if passed else FAILURE_EXIT_CODE


def harness(*args: object) -> Callable[[list[str] | None], int]:
    """Build a ``main(argv=None)`` entry point from (testfn, root, pattern) triples.

    ``main`` returns the exit code: 0 on success, 101 if any test failed.
    """
    if not args or len(args) % 3:
        raise TypeError("harness expects one or more (testfn, root, pattern) triples")

    triples = [args[start : start + 3] for start in range(0, len(args), 3)]

    def main(argv: list[str] | None = None) -> int:
        requirements = [
            Requirements(
                test=testfn,
                test_name=getattr(testfn, "__name__", repr(testfn)),
                root=str(root),
                pattern=str(pattern),
            )
            for testfn, root, pattern in triples
        ]
        return runner(requirements, argv)

    return main