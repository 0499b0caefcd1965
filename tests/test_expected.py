import logging

import pytest

from nexrun.errors import ConfigParseError, ProfileNotFound
from nexrun.expected import (
    BuildFailed,
    CargoMetadataFailed,
    ConfigReadError,
    ExpectedError,
    ProfileNotFoundError,
    TestRunFailed,
)


@pytest.fixture
def logs(caplog):
    caplog.set_level(logging.DEBUG, logger="nexrun")
    return caplog


def _messages(caplog):
    return [record.getMessage() for record in caplog.records]


@pytest.mark.parametrize(
    "error, code",
    [
        (CargoMetadataFailed(), 102),
        (ProfileNotFoundError(ProfileNotFound("x", [])), 96),
        (ConfigReadError(ConfigParseError("a.toml")), 96),
        (BuildFailed(["cargo"], 1), 101),
        (TestRunFailed(), 100),
    ],
)
def test_exit_codes(error, code):
    assert isinstance(error, ExpectedError)
    assert error.process_exit_code() == code


def test_messages():
    assert str(CargoMetadataFailed()) == "cargo metadata failed"
    assert str(TestRunFailed()) == "test run failed"
    assert str(BuildFailed([], None)) == "build failed"


def test_build_failed_escapes_command():
    error = BuildFailed(["cargo", "test", "a b"], 101)
    assert error.escaped_command == ["cargo", "test", "'a b'"]
    assert error.exit_code == 101


def test_cargo_metadata_failed_logs_nothing(logs):
    error = CargoMetadataFailed()
    assert error.display_to_stderr() is None
    assert _messages(logs) == []
    assert error.process_exit_code() == 102


def test_profile_not_found_display(logs):
    inner = ProfileNotFound("foo", ["default", "ci"])
    ProfileNotFoundError(inner).display_to_stderr()
    assert _messages(logs) == [str(inner)]
    assert logs.records[0].levelno == logging.ERROR


def test_config_read_error_shows_causes(logs):
    root = KeyError("root")
    middle = ValueError("bad value")
    middle.__cause__ = root
    inner = ConfigParseError("x.toml", middle)
    ConfigReadError(inner).display_to_stderr()
    messages = _messages(logs)
    assert messages == [
        str(inner),
        f"\nCaused by:\n  {middle}",
        f"\nCaused by:\n  {root}",
    ]
    assert [r.name for r in logs.records[1:]] == ["nexrun.no_heading"] * 2


def test_build_failed_display(logs):
    error = BuildFailed(["cargo", "test", "a b"], 101)
    error.display_to_stderr()
    messages = _messages(logs)
    assert len(messages) == 1
    message = messages[0]
    assert message.startswith("command ")
    assert " ".join(error.escaped_command) in message
    assert " ".join(error.escaped_command) == "cargo test 'a b'"
    assert "exited with code " in message
    assert str(error.exit_code) in message


def test_build_failed_display_without_code(logs):
    error = BuildFailed(["cargo"], None)
    error.display_to_stderr()
    messages = _messages(logs)
    assert len(messages) == 1
    assert messages[0].endswith("exited")
    assert "with code" not in messages[0]
    assert error.escaped_command[0] in messages[0]


def test_test_run_failed_display(logs):
    error = TestRunFailed()
    error.display_to_stderr()
    assert _messages(logs) == [str(error)]
    assert str(error) == "test run failed"


def test_expected_error_can_be_raised():
    error = TestRunFailed()
    code = error.process_exit_code()
    assert code == 100
    with pytest.raises(ExpectedError, match="test run failed") as info:
        raise error
    assert info.value is error
    assert info.value.process_exit_code() == 100