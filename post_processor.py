# -*- coding: utf-8 -*-
########################
# post_processor.py
########################
# Purpose:
# - Normalize a chart after every line has been dispatched.
#
########################
# Key Logic:
# - Passes run once, in this order:
#   1) reinterpret channel 03 tempo values: decoded as base-36, written as two hex digits
#   2) stable sort each track by exact bar + beat, then collapse chains of notes closer than
#      POSITION_EPSILON, keeping the latest inserted note of each chain (later definitions win)
#   3) pair long notes:
#      - channels 11-29: a note equal to LNOBJ ends the hold started by the note before it
#      - channels 51-69: two consecutive equal values form one hold
#   4) fill unset metadata with defaults, one notice per field at line -1
# - DIFFICULTY and table slots never get defaults.
# - Background sub-tracks are sorted too. A sub-track takes at most one line per bar, so nothing collapses there.
#
########################
# Interfaces:
# Public constants:
# - METADATA_DEFAULTS: tuple[(attribute, command, default), ...]
#
# Public functions:
# - reinterpret_tempo_values(track) -> None
# - sort_track(track) -> None
# - sort_all_tracks(chart) -> None
# - pair_long_notes(chart) -> None
# - apply_metadata_defaults(chart, log) -> int
# - run_post_processing(chart, log) -> None
#
########################

from __future__ import annotations

from typing import List, Optional, Tuple, Union

from chart_models import POSITION_EPSILON, Chart, Note, Track
from diagnostics import NO_LINE, DiagnosticLog


# Fixed track indices (channel - 10).
LNOBJ_TRACK_RANGE = range(0, 20)
PAIRED_TRACK_RANGE = range(40, 60)

METADATA_DEFAULTS: Tuple[Tuple[str, str, Union[int, str]], ...] = (
    ("player_num", "PLAYER", 1),
    ("genre", "GENRE", "(unknown)"),
    ("title", "TITLE", "(unknown)"),
    ("artist", "ARTIST", "(unknown)"),
    ("subartist", "SUBARTIST", "(unknown)"),
    ("init_tempo", "BPM", 130),
    ("play_level", "LEVEL", 3),
    ("judge_rank", "RANK", 3),
    ("gauge_total", "TOTAL", 160),
    ("stage_file", "STAGEFILE", "(none)"),
    ("banner", "BANNER", "(none)"),
    ("back_bmp", "BACKBMP", "(none)"),
)


def reinterpret_tempo_values(track: Track) -> None:
    for note in track.notes:
        if note.value is None:
            continue
        note.value = (note.value // 36) * 16 + (note.value % 36)


def sort_track(track: Track) -> None:
    ordered = sorted(enumerate(track.notes), key=lambda item: (item[1].position, item[0]))

    # A chain continues while neighbours are within POSITION_EPSILON, so notes kept
    # from different chains are always further apart than that.
    kept: List[Tuple[int, Note]] = []
    previous_position = 0.0
    for insertion_index, note in ordered:
        position = note.position
        if kept and position - previous_position <= POSITION_EPSILON:
            if insertion_index > kept[-1][0]:
                kept[-1] = (insertion_index, note)
        else:
            kept.append((insertion_index, note))
        previous_position = position

    track.notes[:] = [note for _insertion_index, note in kept]


def sort_all_tracks(chart: Chart) -> None:
    for track in chart.tracks.sorted_tracks():
        sort_track(track)


def _pair_track(track: Track, lnobj: Optional[int], *, use_lnobj: bool) -> None:
    notes = track.notes
    index = 1
    while index < len(notes):
        previous = notes[index - 1]
        current = notes[index]
        if use_lnobj:
            ends_hold = lnobj is not None and current.value == lnobj and previous.value is not None
        else:
            ends_hold = previous.value is not None and current.value == previous.value
        if ends_hold:
            current.value = None
            previous.hold = True
            index += 1
        index += 1


def pair_long_notes(chart: Chart) -> None:
    lnobj = chart.tables.lnobj
    for track_index in LNOBJ_TRACK_RANGE:
        _pair_track(chart.tracks.fixed[track_index], lnobj, use_lnobj=True)
    for track_index in PAIRED_TRACK_RANGE:
        _pair_track(chart.tracks.fixed[track_index], None, use_lnobj=False)


def _format_default(value: Union[int, str]) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return str(value)


def apply_metadata_defaults(chart: Chart, log: DiagnosticLog) -> int:
    """Fill every unset metadata field. Returns how many fields were defaulted."""
    applied = 0
    for attribute, command, default_value in METADATA_DEFAULTS:
        if getattr(chart.meta, attribute) is not None:
            continue
        log.emit(NO_LINE, f"Command {command} did not appear, defaulting to {_format_default(default_value)}")
        setattr(chart.meta, attribute, default_value)
        applied += 1
    return applied


def run_post_processing(chart: Chart, log: DiagnosticLog) -> None:
    reinterpret_tempo_values(chart.tracks.tempo)
    sort_all_tracks(chart)
    pair_long_notes(chart)
    apply_metadata_defaults(chart, log)


def _run_unit_tests() -> None:
    track = Track()
    track.add_note(1, 0.5, 2)
    track.add_note(1, 0.0, 1)
    track.add_note(1, 0.5, 3)
    sort_track(track)
    assert [(note.beat, note.value) for note in track] == [(0.0, 1), (0.5, 3)]

    tempo = Track()
    tempo.add_note(0, 0.0, 36 * 7 + 8)  # "78"
    reinterpret_tempo_values(tempo)
    assert tempo[0].value == 0x78

    chart = Chart()
    chart.tables.lnobj = 5
    chart.tracks.fixed[1].add_note(0, 0.0, 1)
    chart.tracks.fixed[1].add_note(0, 0.5, 5)
    pair_long_notes(chart)
    assert chart.tracks.fixed[1][0].hold is True
    assert chart.tracks.fixed[1][1].is_terminator

    log = DiagnosticLog()
    assert apply_metadata_defaults(chart, log) == 12
    assert chart.meta.difficulty is None
    assert all(entry.line == NO_LINE for entry in log)


if __name__ == "__main__":
    _run_unit_tests()
    print("post_processor.py: ok")
