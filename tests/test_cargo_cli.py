import argparse

import pytest

from nexrun.cargo_cli import CargoCli, CargoOptions, add_cargo_options, cargo_path
from nexrun.output import Color, OutputContext


def _parse(argv):
    parser = argparse.ArgumentParser()
    add_cargo_options(parser)
    return CargoOptions.from_namespace(parser.parse_args(argv))


def test_default_options_give_no_args():
    assert CargoOptions().to_args() == []
    assert _parse([]) == CargoOptions()


def test_repeated_options_expand_in_order():
    options = CargoOptions(lib=True, bin=["a", "b"], bins=True)
    assert options.to_args() == ["--lib", "--bin", "a", "--bin", "b", "--bins"]


def test_renamed_options():
    options = CargoOptions(cargo_profile="ci", build_jobs="4")
    assert options.to_args() == ["--profile", "ci", "--jobs", "4"]


def test_parser_round_trip():
    options = _parse(["-Z", "flag", "--lib", "-p", "foo", "--cargo-profile", "ci", "--offline"])
    assert options.packages == ["foo"]
    assert options.unstable_flags == ["flag"]
    assert options.to_args() == [
        "--lib", "--package", "foo", "--profile", "ci", "--offline", "-Z", "flag",
    ]


def test_parser_lists_are_independent():
    first = _parse(["--features", "x"])
    second = _parse([])
    assert first.features == ["x"]
    assert second.features == []


def test_cargo_path_from_env(monkeypatch):
    monkeypatch.setenv("CARGO", "/opt/tools/cargo")
    assert cargo_path() == "/opt/tools/cargo"
    monkeypatch.delenv("CARGO")
    assert cargo_path() == "cargo"


def test_all_args(monkeypatch):
    monkeypatch.delenv("CARGO", raising=False)
    cli = CargoCli("metadata")
    cli.add_args(["--format-version=1", "--no-deps"]).add_arg("--all-features")
    assert cli.all_args() == [
        "cargo", "metadata", "--format-version=1", "--no-deps", "--all-features",
    ]


def test_to_command_with_manifest(monkeypatch):
    monkeypatch.delenv("CARGO", raising=False)
    cli = CargoCli("test", "ws/Cargo.toml", OutputContext(Color.NEVER))
    cli.add_args(["--no-run"]).add_options(CargoOptions(release=True))
    assert cli.to_command() == [
        "cargo", "--color=never", "test", "--manifest-path", "ws/Cargo.toml",
        "--no-run", "--release",
    ]


def test_to_command_default_color(monkeypatch):
    monkeypatch.delenv("CARGO", raising=False)
    command = CargoCli("metadata").to_command()
    assert command == ["cargo", "--color=auto", "metadata"]


def test_run_missing_executable(monkeypatch, tmp_path):
    monkeypatch.setenv("CARGO", str(tmp_path / "no-such-cargo"))
    with pytest.raises(OSError):
        CargoCli("metadata").run()