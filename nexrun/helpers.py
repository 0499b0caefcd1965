"""Small output helpers shared by reporters."""

from __future__ import annotations

from collections.abc import Callable
from typing import TextIO


def write_test_name(
    name: str, style: Callable[[str], str] | None, writer: TextIO
) -> None:
    """Write ``name``, applying ``style`` only to the part after the last ``::``."""
    rest, sep, trailing = name.rpartition("::")
    if sep:
        writer.write(f"{rest}::")
    writer.write(style(trailing) if style is not None else trailing)