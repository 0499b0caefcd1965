# nexrun

Tools for running and organising tests:

- **`nexrun.datatest`**: a small harness for data-driven tests. You write one
  test function that takes a path, point it at a directory of fixture files
  and a regular expression, and it runs once per matching file.
- **`nexrun.metadata`**: readers for the machine-readable test list that
  `cargo nextest list --format=json` produces, the documented exit codes, and
  a command builder that runs the list command and parses the result.
- **`nexrun.partition`**: splitting a test run across several machines, by
  counting (`count:M/N`) or by hashing test names (`hash:M/N`).
- **`nexrun.cargo_cli`**, **`nexrun.output`**, **`nexrun.expected`**,
  **`nexrun.errors`** and **`nexrun.helpers`**: building cargo command lines,
  colour handling and log formatting, and the errors and exit codes a
  test-runner front end reports.

It needs nothing outside the standard library.

## Data-driven tests

`harness` takes one or more triples of test function, root directory and
pattern, and returns a `main(argv=None)` function that returns the exit code:

```python
from pathlib import Path

from nexrun.datatest import harness


def read_fixture(path: Path) -> None:
    path.read_text()


main = harness(read_fixture, "tests/files", r"^.*/*")

if __name__ == "__main__":
    raise SystemExit(main())
```

Every regular, non-hidden file under `tests/files` (searched recursively,
without following symbolic links) whose path matches the pattern becomes a
test named `read_fixture::<relative path>`. A test passes when the function
returns and fails when it raises; the error's `repr` is printed for failures
other than `AssertionError`. If no file matches, or the pattern is not a valid
regular expression, `ValueError` is raised rather than silently running
nothing.

Several sets can be given at once:

```python
main = harness(
    check_json, "fixtures/json", r"\.json$",
    check_toml, "fixtures/toml", r"\.toml$",
)
```

`main` understands the usual test-runner arguments: a name filter (substring,
or whole name with `--exact`), `--list`, `-q`/`--quiet`, `--test-threads`
(default 32, or the `DATATEST_THREADS` environment variable), `--ignored`
(which always selects no tests) and `--format pretty|terse|json`. Options kept
only for compatibility, such as `--nocapture` or `--skip`, are accepted and
ignored. `main` returns 0 when every test passed and 101 otherwise.

The pieces are usable on their own: `Requirements(...).expand()` gives the
list of `Test` objects, `run_tests(options, tests, out)` runs them and writes
the report to `out`, and `parse_options(argv)` returns a `TestOptions`.

## Reading a test list

```python
from nexrun.metadata import ListCommand, TestListSummary

summary = ListCommand().add_args(["--workspace"]).exec()
print(summary.test_count)

for suite_id, suite in summary.rust_suites.items():
    for name, case in suite.testcases.items():
        if case.filter_match.is_match():
            print(suite_id, name)
```

`ListCommand` uses `$CARGO` (or `cargo`) unless `cargo_path(...)` is set;
`manifest_path(...)` and `current_dir(...)` are also available, and
`cargo_command()` returns the command line without running it.

Already captured output can be parsed directly with
`TestListSummary.parse_json(text)` and written back with `to_json()`; the
`from_dict`/`to_dict` methods work on plain dictionaries. Failures to run the
command, a non-zero exit and malformed output raise `CommandExecError`,
`CommandFailedError` and `CommandJsonError`, all subclasses of
`CommandError`. The documented exit codes live on the `NextestExitCode` enum.

## Partitioning

```python
from nexrun.partition import PartitionerBuilder

builder = PartitionerBuilder.parse("hash:1/2")
partitioner = builder.build()
selected = [name for name in test_names if partitioner.test_matches(name)]
```

A count partitioner is stateful: it selects every N-th test it is asked
about, so build a fresh one for each test binary. A hash partitioner decides
from the test name alone, using the 64-bit xxHash (`xxhash64`). Malformed
input such as `hash:0/2` or `count:1/` raises `PartitionerBuilderParseError`,
a subclass of `ValueError`.

## Cargo command lines and output

```python
from nexrun.cargo_cli import CargoCli, CargoOptions
from nexrun.output import Color, OutputContext

cli = CargoCli("test", "Cargo.toml", OutputContext(Color.NEVER))
cli.add_args(["--no-run"]).add_options(CargoOptions(release=True, features=["serde"]))
print(cli.to_command())
# ['cargo', '--color=never', 'test', '--manifest-path', 'Cargo.toml',
#  '--no-run', '--release', '--features', 'serde']
```

`add_cargo_options(parser)` adds the cargo options to an `argparse` parser,
and `CargoOptions.from_namespace(...)` collects them back. `CargoCli.run()`
runs the command with stdout captured.

`Color.from_str("auto" | "always" | "never")` parses a colour choice.
`Color.init()` applies it and sets up logging to stderr on the `nexrun`
logger, at the level named by `NEXTEST_LOG` (errors only by default), with
`LogFormatter` writing `error: ...`, `warning: ...` and so on.

`nexrun.expected` holds the expected failures, `CargoMetadataFailed`,
`ProfileNotFoundError`, `ConfigReadError`, `BuildFailed` and `TestRunFailed`;
each has `process_exit_code()` and `display_to_stderr()`, which logs the error
and the chain of errors that caused it.

## What it does not do

There is no `cargo nextest` command here: nothing builds test binaries,
runs them in parallel, retries them, reads configuration profiles or writes
JUnit reports. The modules above supply the parts such a front end would use:
command lines, partitioning, test-list parsing, colour and logging, and error
reporting with exit codes.