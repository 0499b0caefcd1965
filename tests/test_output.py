import io
import logging

import pytest

from nexrun.output import Color, LogFormatter, OutputContext


class _FakeTty(io.StringIO):
    def isatty(self):
        return True


@pytest.fixture
def restore_logging():
    yield
    Color.AUTO.init()
    logger = logging.getLogger("nexrun")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


def _record(name, level, msg):
    return logging.LogRecord(name, level, __file__, 1, msg, None, None)


@pytest.mark.parametrize("color", list(Color))
def test_from_str_round_trip(color):
    assert Color.from_str(color.value) is color


def test_from_str_rejects_unknown():
    with pytest.raises(ValueError) as info:
        Color.from_str("sometimes")
    assert str(info.value) == (
        "sometimes is not a valid option, expected `auto`, `always` or `never`"
    )


def test_to_arg_values():
    assert Color.AUTO.to_arg() == "--color=auto"
    assert Color.ALWAYS.to_arg() == "--color=always"
    assert Color.NEVER.to_arg() == "--color=never"


def test_should_colorize_fixed_choices():
    stream = io.StringIO()
    assert Color.ALWAYS.should_colorize(stream) is True
    assert Color.NEVER.should_colorize(_FakeTty()) is False


def test_should_colorize_auto(monkeypatch):
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)
    assert Color.AUTO.should_colorize(io.StringIO()) is False
    assert Color.AUTO.should_colorize(_FakeTty()) is True
    monkeypatch.setenv("NO_COLOR", "1")
    assert Color.AUTO.should_colorize(_FakeTty()) is False


def test_output_context_default():
    assert OutputContext().color is Color.AUTO


@pytest.mark.parametrize(
    "level, heading",
    [
        (logging.ERROR, "error"),
        (logging.WARNING, "warning"),
        (logging.INFO, "info"),
        (logging.DEBUG, "debug"),
    ],
)
def test_formatter_headings(level, heading):
    formatter = LogFormatter(colorize=False)
    assert formatter.format(_record("nexrun", level, "boom")) == f"{heading}: boom"


def test_formatter_below_debug_is_empty():
    formatter = LogFormatter(colorize=False)
    assert formatter.format(_record("nexrun", 5, "boom")) == ""


def test_formatter_no_heading():
    formatter = LogFormatter(colorize=True)
    record = _record("nexrun.no_heading", logging.ERROR, "\nCaused by:\n  x")
    assert formatter.format(record) == "\nCaused by:\n  x"


def test_formatter_colored_error():
    text = LogFormatter(colorize=True).format(_record("nexrun", logging.ERROR, "boom"))
    assert text.startswith("\x1b[")
    assert "error" in text
    assert text.endswith(": boom")


def test_init_logs_errors_by_default(monkeypatch, capsys, restore_logging):
    monkeypatch.delenv("NEXTEST_LOG", raising=False)
    Color.NEVER.init()
    logger = logging.getLogger("nexrun")
    logger.warning("hidden")
    logger.error("boom")
    assert capsys.readouterr().err == "error: boom\n"


def test_init_reads_level_from_env(monkeypatch, capsys, restore_logging):
    monkeypatch.setenv("NEXTEST_LOG", "debug")
    Color.NEVER.init()
    logging.getLogger("nexrun").debug("detail")
    assert capsys.readouterr().err == "debug: detail\n"


def test_init_twice_keeps_one_handler(monkeypatch, capsys, restore_logging):
    monkeypatch.delenv("NEXTEST_LOG", raising=False)
    Color.NEVER.init()
    Color.NEVER.init()
    logging.getLogger("nexrun").error("once")
    assert capsys.readouterr().err.count("once") == 1