"""Building and running cargo command lines."""

from __future__ import annotations

import argparse
import os
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass, field, fields

from nexrun.output import OutputContext


def cargo_path() -> str:
    """Return the cargo executable: ``$CARGO`` if set, else ``cargo``."""
    return os.environ.get("CARGO", "cargo")


def _repeat(flag: str, values: Iterable[str]) -> list[str]:
    return [item for value in values for item in (flag, value)]


@dataclass
class CargoOptions:
    """Options passed down to cargo."""

    lib: bool = False
    bin: list[str] = field(default_factory=list)
    bins: bool = False
    test: list[str] = field(default_factory=list)
    tests: bool = False
    bench: list[str] = field(default_factory=list)
    benches: bool = False
    all_targets: bool = False
    packages: list[str] = field(default_factory=list)
    workspace: bool = False
    exclude: list[str] = field(default_factory=list)
    all: bool = False
    release: bool = False
    cargo_profile: str | None = None
    build_jobs: str | None = None
    features: list[str] = field(default_factory=list)
    all_features: bool = False
    no_default_features: bool = False
    target: str | None = None
    target_dir: str | None = None
    ignore_rust_version: bool = False
    unit_graph: bool = False
    future_incompat_report: bool = False
    frozen: bool = False
    locked: bool = False
    offline: bool = False
    config: list[str] = field(default_factory=list)
    unstable_flags: list[str] = field(default_factory=list)

    @classmethod
    def from_namespace(cls, namespace: argparse.Namespace) -> CargoOptions:
        """Collect options parsed by a parser set up with :func:`add_cargo_options`."""
        kwargs = {}
        for option in fields(cls):
            value = getattr(namespace, option.name, None)
            if value is None:
                continue
            kwargs[option.name] = list(value) if isinstance(value, (list, tuple)) else value
        return cls(**kwargs)

    def to_args(self) -> list[str]:
        """Return the cargo arguments for these options."""
        args: list[str] = []
        if self.lib:
            args.append("--lib")
        args += _repeat("--bin", self.bin)
        if self.bins:
            args.append("--bins")
        args += _repeat("--test", self.test)
        if self.tests:
            args.append("--tests")
        args += _repeat("--bench", self.bench)
        if self.benches:
            args.append("--benches")
        if self.all_targets:
            args.append("--all-targets")
        args += _repeat("--package", self.packages)
        if self.workspace:
            args.append("--workspace")
        args += _repeat("--exclude", self.exclude)
        if self.all:
            args.append("--all")
        if self.release:
            args.append("--release")
        if self.cargo_profile is not None:
            args += ["--profile", self.cargo_profile]
        if self.build_jobs is not None:
            args += ["--jobs", self.build_jobs]
        args += _repeat("--features", self.features)
        if self.all_features:
            args.append("--all-features")
        if self.no_default_features:
            args.append("--no-default-features")
        if self.target is not None:
            args += ["--target", self.target]
        if self.target_dir is not None:
            args += ["--target-dir", self.target_dir]
        if self.ignore_rust_version:
            args.append("--ignore-rust-version")
        if self.unit_graph:
            args.append("--unit-graph")
        if self.future_incompat_report:
            args.append("--future-incompat-report")
        if self.frozen:
            args.append("--frozen")
        if self.locked:
            args.append("--locked")
        if self.offline:
            args.append("--offline")
        args += _repeat("--config", self.config)
        args += _repeat("-Z", self.unstable_flags)
        return args


def add_cargo_options(parser: argparse.ArgumentParser) -> argparse._ArgumentGroup:
    """Add the cargo options to ``parser`` and return their argument group."""
    group = parser.add_argument_group("CARGO OPTIONS")
    group.add_argument("--lib", action="store_true",
                       help="test only this package's library unit tests")
    group.add_argument("--bin", action="append", help="test only the specified binary")
    group.add_argument("--bins", action="store_true", help="test all binaries")
    group.add_argument("--test", action="append", help="test only the specified test target")
    group.add_argument("--tests", action="store_true", help="test all targets")
    group.add_argument("--bench", action="append", help="test only the specified bench target")
    group.add_argument("--benches", action="store_true", help="test all benches")
    group.add_argument("--all-targets", action="store_true", help="test all targets")
    group.add_argument("-p", "--package", dest="packages", action="append",
                       help="package to test")
    group.add_argument("--workspace", action="store_true",
                       help="build all packages in the workspace")
    group.add_argument("--exclude", action="append", help="exclude packages from the test")
    group.add_argument("--all", action="store_true", help="alias for workspace (deprecated)")
    group.add_argument("--release", action="store_true",
                       help="build artifacts in release mode, with optimizations")
    group.add_argument("--cargo-profile", metavar="NAME",
                       help="build artifacts with the specified Cargo profile")
    group.add_argument("--build-jobs", metavar="JOBS", help="number of build jobs to run")
    group.add_argument("--features", action="append",
                       help="space or comma separated list of features to activate")
    group.add_argument("--all-features", action="store_true",
                       help="activate all available features")
    group.add_argument("--no-default-features", action="store_true",
                       help="do not activate the `default` feature")
    group.add_argument("--target", metavar="TRIPLE", help="build for the target triple")
    group.add_argument("--target-dir", metavar="DIR",
                       help="directory for all generated artifacts")
    group.add_argument("--ignore-rust-version", action="store_true",
                       help="ignore `rust-version` specification in packages")
    group.add_argument("--unit-graph", action="store_true",
                       help="output build graph in JSON (unstable)")
    group.add_argument("--future-incompat-report", action="store_true",
                       help="outputs a future incompatibility report at the end of the build")
    group.add_argument("--frozen", action="store_true",
                       help="require Cargo.lock and cache are up to date")
    group.add_argument("--locked", action="store_true", help="require Cargo.lock is up to date")
    group.add_argument("--offline", action="store_true",
                       help="run without accessing the network")
    group.add_argument("--config", action="append", metavar="KEY=VALUE",
                       help="override a configuration value (unstable)")
    group.add_argument("-Z", dest="unstable_flags", action="append", metavar="FLAG",
                       help="unstable (nightly-only) flags to Cargo")
    return group


class CargoCli:
    """A cargo invocation: a subcommand, an optional manifest and arguments."""

    def __init__(
        self,
        command: str,
        manifest_path: str | os.PathLike[str] | None = None,
        output: OutputContext | None = None,
    ) -> None:
        self.cargo_path = cargo_path()
        self.command = command
        self.manifest_path = None if manifest_path is None else os.fspath(manifest_path)
        self.output = output if output is not None else OutputContext()
        self.args: list[str] = []

    def add_arg(self, arg: str) -> CargoCli:
        self.args.append(arg)
        return self

    def add_args(self, args: Iterable[str]) -> CargoCli:
        self.args.extend(args)
        return self

    def add_options(self, options: CargoOptions) -> CargoCli:
        self.args.extend(options.to_args())
        return self

    def all_args(self) -> list[str]:
        """Return the command as described to users: cargo, subcommand, arguments."""
        return [self.cargo_path, self.command, *self.args]

    def to_command(self) -> list[str]:
        """Return the full command line that :meth:`run` executes."""
        command = [self.cargo_path, self.output.color.to_arg(), self.command]
        if self.manifest_path is not None:
            command += ["--manifest-path", self.manifest_path]
        return command + self.args

    def run(self) -> subprocess.CompletedProcess[bytes]:
        """Run cargo, capturing stdout only; a non-zero exit is not an error."""
        return subprocess.run(self.to_command(), stdout=subprocess.PIPE, check=False)