# -*- coding: utf-8 -*-
########################
# line_scanner.py
########################
# Purpose:
# - Split a chart source buffer into numbered, trimmed logical lines.
# - Only '#' lines are yielded. Blank lines and free-text comments are counted but dropped.
#
# Design notes:
# - Line breaks: CRLF, bare CR, bare LF. The last line may be unterminated.
# - A NUL character ends the buffer. Text after it is never scanned.
# - Trimming uses ASCII whitespace only, so non-ASCII text in arguments is preserved as written.
# - Yields slices of the original text. The buffer itself is never modified.
#
########################
# Interfaces:
# Public constants:
# - ASCII_WHITESPACE: str
#
# Public dataclasses:
# - SourceLine(line_number: int, text: str)
#
# Public functions:
# - iter_source_lines(source: str) -> Iterator[SourceLine]
#
########################

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator


ASCII_WHITESPACE = " \t\n\v\f\r"

_LINE_PATTERN = re.compile(r"[^\r\n]*(?:\r\n|\r|\n|\Z)")


@dataclass(frozen=True)
class SourceLine:
    line_number: int
    text: str


def iter_source_lines(source: str) -> Iterator[SourceLine]:
    terminator_index = source.find("\0")
    buffer_text = source if terminator_index < 0 else source[:terminator_index]
    buffer_length = len(buffer_text)

    line_number = 0
    for match in _LINE_PATTERN.finditer(buffer_text):
        if match.start() >= buffer_length:
            break
        line_number += 1
        line_text = match.group(0).strip(ASCII_WHITESPACE)
        if not line_text.startswith("#"):
            continue
        yield SourceLine(line_number=line_number, text=line_text)


def _run_unit_tests() -> None:
    lines = list(iter_source_lines("#A 1\r\n\r  #B 2  \nplain comment\n#C 3"))
    assert [(line.line_number, line.text) for line in lines] == [(1, "#A 1"), (3, "#B 2"), (5, "#C 3")]

    assert list(iter_source_lines("")) == []
    assert list(iter_source_lines("\n\n")) == []
    assert [line.line_number for line in iter_source_lines("#A x\n")] == [1]
    assert [line.text for line in iter_source_lines("#A x\0#B y")] == ["#A x"]


if __name__ == "__main__":
    _run_unit_tests()
    print("line_scanner.py: ok")
