# -*- coding: utf-8 -*-
########################
# chart_models.py
########################
# Purpose:
# - Data models for a loaded BMS chart: metadata, reference tables and note tracks.
# - Populated in place by bms_store.load_chart and normalized by post_processor.
#
# Design notes:
# - Plain mutable dataclasses. The caller owns the Chart; every load resets it first.
# - "Unset" is always None. Defaults are filled by post_processor, never here.
# - Tracks are plain Python lists of Note in insertion order. Ordering is a post-processing concern.
# - A long-note terminator is a Note whose value is None; it extends the preceding hold note.
#
########################
# Interfaces:
# Public constants:
# - INDEX_MAX (1296 base-36 indices), BARS_COUNT (1000), BGM_TRACKS (32), FIXED_TRACKS (60)
# - POSITION_EPSILON (1e-6)
#
# Public dataclasses:
# - Note(bar: int, beat: float, value: Optional[int], hold: bool = False)
# - Track(notes: list[Note])
# - Metadata(player_num, genre, title, artist, subartist, init_tempo, play_level,
#            judge_rank, gauge_total, difficulty, stage_file, banner, back_bmp)
# - Tables(wav, bmp, tempo, stop, lnobj)
# - Tracks(time_sig, tempo, bga_base, bga_poor, bga_layer, ex_tempo, stop,
#          background, background_count, fixed)
# - Chart(meta: Metadata, tables: Tables, tracks: Tracks)
#   - reset() -> None
#   - to_payload() -> dict
#
# Public functions:
# - fixed_track_index(channel: int) -> Optional[int]
#
########################

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import base36


INDEX_MAX = base36.INDEX_MAX
BARS_COUNT = 1000
BGM_TRACKS = 32
FIXED_TRACKS = 60
POSITION_EPSILON = 1e-6

DEFAULT_TIME_SIGNATURE = 1.0


def check_bar(bar: int) -> int:
    bar_value = int(bar)
    if bar_value < 0 or bar_value >= BARS_COUNT:
        raise ValueError(f"Bar {bar_value} outside 000-{BARS_COUNT - 1:03d}")
    return bar_value


def fixed_track_index(channel: int) -> Optional[int]:
    """Map a two-digit channel code to its fixed track index, or None when it is not a note channel."""
    channel_value = int(channel)
    if channel_value < 10 or channel_value > 69 or channel_value % 10 == 0:
        return None
    return channel_value - 10


@dataclass
class Note:
    bar: int
    beat: float
    value: Optional[int]
    hold: bool = False

    @property
    def position(self) -> float:
        return float(self.bar) + float(self.beat)

    @property
    def is_terminator(self) -> bool:
        return self.value is None


@dataclass
class Track:
    notes: List[Note] = field(default_factory=list)

    def add_note(self, bar: int, beat: float, value: int) -> Note:
        note = Note(bar=check_bar(bar), beat=float(beat), value=int(value))
        self.notes.append(note)
        return note

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(self.notes)

    def __getitem__(self, index: int) -> Note:
        return self.notes[index]


@dataclass
class Metadata:
    player_num: Optional[int] = None
    genre: Optional[str] = None
    title: Optional[str] = None
    artist: Optional[str] = None
    subartist: Optional[str] = None
    init_tempo: Optional[int] = None
    play_level: Optional[int] = None
    judge_rank: Optional[int] = None
    gauge_total: Optional[int] = None
    difficulty: Optional[int] = None
    stage_file: Optional[str] = None
    banner: Optional[str] = None
    back_bmp: Optional[str] = None


def _empty_slots() -> List[Any]:
    return [None] * INDEX_MAX


@dataclass
class Tables:
    wav: List[Optional[str]] = field(default_factory=_empty_slots)
    bmp: List[Optional[str]] = field(default_factory=_empty_slots)
    tempo: List[Optional[float]] = field(default_factory=_empty_slots)
    stop: List[Optional[int]] = field(default_factory=_empty_slots)
    lnobj: Optional[int] = None


def _empty_bars() -> List[Optional[float]]:
    return [None] * BARS_COUNT


@dataclass
class Tracks:
    time_sig: List[Optional[float]] = field(default_factory=_empty_bars)
    tempo: Track = field(default_factory=Track)
    bga_base: Track = field(default_factory=Track)
    bga_poor: Track = field(default_factory=Track)
    bga_layer: Track = field(default_factory=Track)
    ex_tempo: Track = field(default_factory=Track)
    stop: Track = field(default_factory=Track)
    background: List[Track] = field(default_factory=lambda: [Track() for _ in range(BGM_TRACKS)])
    background_count: int = 0
    fixed: List[Track] = field(default_factory=lambda: [Track() for _ in range(FIXED_TRACKS)])

    def time_signature(self, bar: int) -> float:
        value = self.time_sig[check_bar(bar)]
        return DEFAULT_TIME_SIGNATURE if value is None else float(value)

    def sorted_tracks(self) -> List[Track]:
        """Tracks normalized by the sort and dedupe pass, in processing order."""
        return (
            list(self.fixed)
            + [self.tempo, self.bga_base, self.bga_layer, self.bga_poor, self.ex_tempo, self.stop]
            + self.background[: self.background_count]
        )

    def named_tracks(self) -> Dict[str, Track]:
        return {
            "tempo": self.tempo,
            "bga_base": self.bga_base,
            "bga_poor": self.bga_poor,
            "bga_layer": self.bga_layer,
            "ex_tempo": self.ex_tempo,
            "stop": self.stop,
        }


@dataclass
class Chart:
    meta: Metadata = field(default_factory=Metadata)
    tables: Tables = field(default_factory=Tables)
    tracks: Tracks = field(default_factory=Tracks)

    def reset(self) -> None:
        self.meta = Metadata()
        self.tables = Tables()
        self.tracks = Tracks()

    def to_payload(self) -> Dict[str, Any]:
        """JSON-friendly summary. Unset table slots and empty tracks are omitted."""

        def notes_payload(track: Track) -> List[Dict[str, Any]]:
            return [
                {"bar": note.bar, "beat": note.beat, "value": note.value, "hold": note.hold}
                for note in track.notes
            ]

        def table_payload(slots: List[Any]) -> Dict[str, Any]:
            return {base36.encode_index(index): value for index, value in enumerate(slots) if value is not None}

        tracks_payload: Dict[str, Any] = {}
        for name, track in self.tracks.named_tracks().items():
            if len(track) > 0:
                tracks_payload[name] = notes_payload(track)
        for index, track in enumerate(self.tracks.fixed):
            if len(track) > 0:
                tracks_payload[f"fixed_{index + 10:02d}"] = notes_payload(track)
        for index in range(self.tracks.background_count):
            tracks_payload[f"background_{index:02d}"] = notes_payload(self.tracks.background[index])

        return {
            "meta": asdict(self.meta),
            "tables": {
                "wav": table_payload(self.tables.wav),
                "bmp": table_payload(self.tables.bmp),
                "tempo": table_payload(self.tables.tempo),
                "stop": table_payload(self.tables.stop),
                "lnobj": None if self.tables.lnobj is None else base36.encode_index(self.tables.lnobj),
            },
            "time_signatures": {
                f"{bar:03d}": value for bar, value in enumerate(self.tracks.time_sig) if value is not None
            },
            "tracks": tracks_payload,
        }
