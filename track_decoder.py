# -*- coding: utf-8 -*-
########################
# track_decoder.py
########################
# Purpose:
# - Decode the data part of a '#BBBCC:DATA' line into notes of one bar.
#
# Design notes:
# - DATA is a run of two-character base-36 tokens. Whitespace may appear anywhere, even inside a token.
# - Slot count is (non-whitespace characters // 2), fixed before scanning.
# - A token with a non base-36 character is reported and skipped without taking a slot.
# - "00" takes a slot but produces no note.
# - Notes are appended in data order. Sorting happens in post_processor.
#
########################
# Interfaces:
# Public constants:
# - DATA_COLUMN_OFFSET: int
#
# Public functions:
# - count_slots(data: str) -> int
# - parse_track(log, line_number: int, data: str, track: chart_models.Track, bar: int) -> int
#
########################

from __future__ import annotations

from typing import Optional

import base36
from chart_models import Track, check_bar
from diagnostics import DiagnosticLog
from line_scanner import ASCII_WHITESPACE


# '#BBBCC:' is 7 characters; reported columns are approximate by one.
DATA_COLUMN_OFFSET = 8


def _is_space(ch: str) -> bool:
    return ch in ASCII_WHITESPACE


def count_slots(data: str) -> int:
    return sum(1 for ch in data if not _is_space(ch)) // 2


def _skip_spaces(data: str, index: int) -> int:
    while index < len(data) and _is_space(data[index]):
        index += 1
    return index


def parse_track(log: DiagnosticLog, line_number: int, data: str, track: Track, bar: int) -> int:
    """Append the notes encoded in data to track. Returns the number of notes added."""
    bar_value = check_bar(bar)
    slot_count = count_slots(data)
    data_length = len(data)

    added = 0
    slot_index = 0
    first = 0
    while True:
        first = _skip_spaces(data, first)
        if first >= data_length:
            break
        second = _skip_spaces(data, first + 1)
        if second >= data_length:
            log.emit(line_number, f"Extraneous trailing character {data[first]}, ignoring")
            break

        value: Optional[int] = base36.try_decode_pair(data[first], data[second])
        if value is None:
            log.emit(
                line_number,
                f"Invalid base-36 index {data[first]}{data[second]} at column "
                f"{first + DATA_COLUMN_OFFSET}, ignoring",
            )
            first = second + 1
            continue

        if value != 0:
            track.add_note(bar_value, float(slot_index) / float(slot_count), value)
            added += 1
        slot_index += 1
        first = second + 1

    return added
