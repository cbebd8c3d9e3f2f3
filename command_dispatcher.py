# -*- coding: utf-8 -*-
########################
# command_dispatcher.py
########################
# Purpose:
# - Route one '#' line of a chart to track decoding, metadata assignment or table assignment.
# - Report every anomaly to the DiagnosticLog and keep going.
#
########################
# Key Logic:
# - '#BBBCC:DATA' with five ASCII digits and a colon is track data. Anything else is '#NAME ARG'.
# - Channel codes are decimal. 01 background, 02 time signature, 03 tempo, 04/06/07 BGA,
#   08 indexed tempo, 09 stop, 11-69 (not multiples of 10) note tracks. 05 and the rest are unknown.
# - Every metadata field and table slot goes through one checked assignment:
#   - parse with its ValueRule, reject and report when out of range or unparsable
#   - warn when the target was already set, then overwrite
# - Re-use of a channel within a bar is reported and merged. Background data always takes a fresh sub-track.
#
########################
# Interfaces:
# Public constants:
# - METADATA_FIELDS, TABLE_COMMANDS
# - EMPTY_ARGUMENT_MESSAGE, INVALID_TIME_SIGNATURE_MESSAGE (both shorter than MESSAGE_MAX_LEN)
#
# Public dataclasses:
# - ValueRule(kind: "int" | "float" | "text", minimum, maximum)
#   - parse(argument: str) -> Optional[int | float | str]
#   - invalid_message() -> str
# - MetadataField(command: str, attribute: str, rule: ValueRule)
# - TableCommand(prefix: str, attribute: str, rule: ValueRule, label: str)
# - TrackHeader(bar: int, channel: int, data: str)
#
# Public classes:
# - class ChartParseState  # per-load scratch state
#
# Public functions:
# - parse_track_header(body: str) -> Optional[TrackHeader]
# - dispatch_line(chart, state, log, source_line) -> None
#
########################

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Set, Tuple, Union

import base36
from chart_models import BARS_COUNT, BGM_TRACKS, Chart, Track, check_bar, fixed_track_index
from diagnostics import DiagnosticLog
from line_scanner import ASCII_WHITESPACE, SourceLine
from track_decoder import parse_track


_INT_PREFIX = re.compile(r"[+-]?[0-9]+")
_FLOAT_PREFIX = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")

_DECIMAL_DIGITS = "0123456789"

TIME_SIGNATURE_MIN = 0.25
TIME_SIGNATURE_MAX = 63.75

EMPTY_ARGUMENT_MESSAGE = "Command requires non-empty arguments, ignoring"
INVALID_TIME_SIGNATURE_MESSAGE = (
    f"Invalid time signature, should be {TIME_SIGNATURE_MIN:g}-{TIME_SIGNATURE_MAX:g} "
    f"in steps of {TIME_SIGNATURE_MIN:g}"
)

FieldValue = Union[int, float, str]


def parse_int_prefix(text: str) -> Optional[int]:
    match = _INT_PREFIX.match(text.lstrip(ASCII_WHITESPACE))
    if match is None:
        return None
    return int(match.group(0))


def parse_float_prefix(text: str) -> Optional[float]:
    match = _FLOAT_PREFIX.match(text.lstrip(ASCII_WHITESPACE))
    if match is None:
        return None
    return float(match.group(0))


def _format_bound(value: float) -> str:
    return f"{value:g}"


@dataclass(frozen=True)
class ValueRule:
    kind: str
    minimum: Optional[float] = None
    maximum: Optional[float] = None

    def parse(self, argument: str) -> Optional[FieldValue]:
        if self.kind == "text":
            return argument if argument else None

        parsed: Optional[FieldValue]
        if self.kind == "int":
            parsed = parse_int_prefix(argument)
        elif self.kind == "float":
            parsed = parse_float_prefix(argument)
        else:
            raise ValueError(f"Unknown value kind: {self.kind!r}")

        if parsed is None:
            return None
        if self.minimum is not None and parsed < self.minimum:
            return None
        if self.maximum is not None and parsed > self.maximum:
            return None
        return parsed

    def invalid_message(self) -> str:
        # Kept within MESSAGE_MAX_LEN so the range always survives truncation.
        if self.kind == "text":
            return EMPTY_ARGUMENT_MESSAGE
        noun = "integer" if self.kind == "int" else "number"
        if self.minimum is not None and self.maximum is not None:
            expected = f"between {_format_bound(self.minimum)} and {_format_bound(self.maximum)} (inclusive)"
        elif self.minimum is not None:
            expected = f"at least {_format_bound(self.minimum)}"
        elif self.maximum is not None:
            expected = f"at most {_format_bound(self.maximum)}"
        else:
            return f"Invalid {noun}"
        return f"Invalid {noun}, should be {expected}"


TEXT = ValueRule("text")


@dataclass(frozen=True)
class MetadataField:
    command: str
    attribute: str
    rule: ValueRule


@dataclass(frozen=True)
class TableCommand:
    prefix: str
    attribute: str
    rule: ValueRule
    label: str


METADATA_FIELDS: Tuple[MetadataField, ...] = (
    MetadataField("PLAYER", "player_num", ValueRule("int", 1, 3)),
    MetadataField("GENRE", "genre", TEXT),
    MetadataField("TITLE", "title", TEXT),
    MetadataField("ARTIST", "artist", TEXT),
    MetadataField("SUBARTIST", "subartist", TEXT),
    MetadataField("BPM", "init_tempo", ValueRule("int", 1, 999)),
    MetadataField("PLAYLEVEL", "play_level", ValueRule("int", 1, 999)),
    MetadataField("RANK", "judge_rank", ValueRule("int", 0, 3)),
    MetadataField("TOTAL", "gauge_total", ValueRule("int", 1, 999)),
    MetadataField("DIFFICULTY", "difficulty", ValueRule("int", 1, 5)),
    MetadataField("STAGEFILE", "stage_file", TEXT),
    MetadataField("BANNER", "banner", TEXT),
    MetadataField("BACKBMP", "back_bmp", TEXT),
)

_METADATA_BY_COMMAND = {item.command: item for item in METADATA_FIELDS}

# Checked in order. BPM alone is metadata and is matched before the BPMxx table.
TABLE_COMMANDS: Tuple[TableCommand, ...] = (
    TableCommand("WAV", "wav", TEXT, "Wave"),
    TableCommand("BMP", "bmp", TEXT, "Bitmap"),
    TableCommand("BPM", "tempo", ValueRule("float", 1.0, 999.0), "Tempo"),
    TableCommand("STOP", "stop", ValueRule("int", 0, 32767), "Stop"),
)


@dataclass(frozen=True)
class TrackHeader:
    bar: int
    channel: int
    data: str


class ChartParseState:
    """Scratch state for one load. Discarded once post-processing starts."""

    def __init__(self) -> None:
        self._channels_seen: Set[Tuple[int, int]] = set()
        self._background_used: List[int] = [0] * BARS_COUNT

    def mark_channel(self, bar: int, channel: int) -> bool:
        """Record channel data for bar. Returns True when the pair was already seen."""
        key = (check_bar(bar), int(channel))
        seen = key in self._channels_seen
        self._channels_seen.add(key)
        return seen

    def take_background_slot(self, bar: int) -> Optional[int]:
        bar_value = check_bar(bar)
        used = self._background_used[bar_value]
        if used >= BGM_TRACKS:
            return None
        self._background_used[bar_value] = used + 1
        return used


def _is_decimal(ch: str) -> bool:
    return len(ch) == 1 and ch in _DECIMAL_DIGITS


def parse_track_header(body: str) -> Optional[TrackHeader]:
    """Split the text after '#' into bar, channel and data, or None when it is not a track line."""
    if len(body) < 6 or body[5] != ":":
        return None
    if not all(_is_decimal(ch) for ch in body[:5]):
        return None
    return TrackHeader(bar=int(body[0:3]), channel=int(body[3:5]), data=body[6:])


def _split_command(body: str) -> Tuple[str, str]:
    name_end = 0
    while name_end < len(body) and body[name_end] not in ASCII_WHITESPACE:
        name_end += 1
    return body[:name_end], body[name_end:].strip(ASCII_WHITESPACE)


def _checked_assign(
    log: DiagnosticLog,
    line_number: int,
    *,
    current: Any,
    rule: ValueRule,
    argument: str,
    duplicate_message: str,
    store: Callable[[FieldValue], None],
) -> bool:
    parsed = rule.parse(argument)
    if parsed is None:
        log.emit(line_number, rule.invalid_message())
        return False
    if current is not None:
        log.emit(line_number, duplicate_message)
    store(parsed)
    return True


def _merges_redefinition(channel: int) -> bool:
    return 3 <= channel <= 69 and channel != 5 and channel % 10 != 0


def _handle_time_signature(chart: Chart, log: DiagnosticLog, line_number: int, header: TrackHeader) -> None:
    value = parse_float_prefix(header.data)
    if value is None or value < TIME_SIGNATURE_MIN or value > TIME_SIGNATURE_MAX:
        log.emit(line_number, INVALID_TIME_SIGNATURE_MESSAGE)
        return

    quarters = int(value * 4 + 0.5)
    if abs(quarters - value * 4) >= 1e-3:
        log.emit(line_number, f"Inaccurate time signature, treating as {quarters}/4")
    if chart.tracks.time_sig[header.bar] is not None:
        log.emit(line_number, f"Time signature for bar {header.bar:03d} defined multiple times, overwriting")
    chart.tracks.time_sig[header.bar] = quarters / 4.0


def _channel_track(chart: Chart, channel: int) -> Optional[Track]:
    tracks = chart.tracks
    routed = {
        3: tracks.tempo,
        4: tracks.bga_base,
        6: tracks.bga_poor,
        7: tracks.bga_layer,
        8: tracks.ex_tempo,
        9: tracks.stop,
    }
    if channel in routed:
        return routed[channel]
    fixed_index = fixed_track_index(channel)
    if fixed_index is not None:
        return tracks.fixed[fixed_index]
    return None


def _handle_track_line(
    chart: Chart,
    state: ChartParseState,
    log: DiagnosticLog,
    line_number: int,
    header: TrackHeader,
    raw_channel: str,
) -> None:
    channel = header.channel
    already_seen = state.mark_channel(header.bar, channel)
    if already_seen and _merges_redefinition(channel):
        log.emit(line_number, f"Track {channel:02d} already defined previously, merging all notes")

    if channel == 2:
        _handle_time_signature(chart, log, line_number, header)
        return

    if channel == 1:
        slot = state.take_background_slot(header.bar)
        if slot is None:
            log.emit(
                line_number,
                f"Too many background tracks (more than {BGM_TRACKS}) for bar {header.bar:03d}, ignoring",
            )
            return
        parse_track(log, line_number, header.data, chart.tracks.background[slot], header.bar)
        chart.tracks.background_count = max(chart.tracks.background_count, slot + 1)
        return

    target = _channel_track(chart, channel)
    if target is None:
        log.emit(line_number, f"Unknown track {raw_channel}, ignoring")
        return
    parse_track(log, line_number, header.data, target, header.bar)


def _match_table_command(name: str) -> Optional[Tuple[TableCommand, str, int]]:
    for table_command in TABLE_COMMANDS:
        prefix_length = len(table_command.prefix)
        if not name.startswith(table_command.prefix) or len(name) < prefix_length + 2:
            continue
        index_text = name[prefix_length : prefix_length + 2]
        index = base36.try_decode_pair(index_text[0], index_text[1])
        if index is not None:
            return table_command, index_text, index
    return None


def _handle_lnobj(chart: Chart, log: DiagnosticLog, line_number: int, argument: str) -> None:
    index_text = argument[:2]
    index = base36.try_decode_pair(index_text[0], index_text[1]) if len(index_text) == 2 else None
    if index is None:
        log.emit(line_number, f"Invalid base-36 index {index_text}, ignoring")
        return
    if chart.tables.lnobj is not None:
        log.emit(line_number, "Multiple LNOBJ commands, overwritten")
    chart.tables.lnobj = index


def _handle_command(chart: Chart, log: DiagnosticLog, line_number: int, body: str) -> None:
    name, argument = _split_command(body)
    if not argument:
        log.emit(line_number, EMPTY_ARGUMENT_MESSAGE)
        return

    metadata_field = _METADATA_BY_COMMAND.get(name)
    if metadata_field is not None:
        meta = chart.meta
        attribute = metadata_field.attribute
        _checked_assign(
            log,
            line_number,
            current=getattr(meta, attribute),
            rule=metadata_field.rule,
            argument=argument,
            duplicate_message=f"Multiple {metadata_field.command} commands, overwritten",
            store=lambda value: setattr(meta, attribute, value),
        )
        return

    table_match = _match_table_command(name)
    if table_match is not None:
        table_command, index_text, index = table_match
        slots = getattr(chart.tables, table_command.attribute)

        def store_slot(value: FieldValue) -> None:
            slots[index] = value

        _checked_assign(
            log,
            line_number,
            current=slots[index],
            rule=table_command.rule,
            argument=argument,
            duplicate_message=f"{table_command.label} {index_text} specified multiple times, overwritten",
            store=store_slot,
        )
        return

    if name == "LNOBJ":
        _handle_lnobj(chart, log, line_number, argument)
        return

    log.emit(line_number, f"Unrecognized command {name}, ignoring")


def dispatch_line(chart: Chart, state: ChartParseState, log: DiagnosticLog, source_line: SourceLine) -> None:
    body = source_line.text[1:]
    header = parse_track_header(body)
    if header is not None:
        _handle_track_line(chart, state, log, source_line.line_number, header, body[3:5])
        return
    _handle_command(chart, log, source_line.line_number, body)
