# -*- coding: utf-8 -*-
########################
# bms_store.py
########################
# Purpose:
# - Load BMS chart text into a chart_models.Chart plus a DiagnosticLog.
# - Read chart files from disk with a configurable list of text encodings.
#
# Design notes:
# - Loading never aborts on content. Every anomaly goes to the DiagnosticLog and the chart is always
#   fully populated (defaults included) on return.
# - Each call owns a fresh DiagnosticLog, so loads are independent of each other.
# - The caller owns the Chart. load_chart resets it before scanning.
# - Only two things raise: unreadable sources (ChartSourceError) and allocation failure
#   (ChartOutOfMemoryError).
#
########################
# Interfaces:
# Public dataclasses:
# - LoadResult(chart: Chart, log: DiagnosticLog)
#   - diagnostic_count -> int
#
# Public functions:
# - load_chart(chart: Chart, source: str) -> LoadResult
# - load_chart_text(source: str) -> LoadResult
# - decode_source_bytes(raw: bytes, *, encodings: Sequence[str]) -> tuple[str, str]
# - load_chart_file(chart_path: Path, *, encodings: Sequence[str] = DEFAULT_ENCODINGS,
#                   max_file_bytes: int = DEFAULT_MAX_FILE_BYTES) -> LoadedChartFile
#
# Inputs:
# - Full chart text, or a path to a chart file.
#
# Outputs:
# - LoadResult / LoadedChartFile carrying the chart and its diagnostics.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

from chart_models import Chart
from command_dispatcher import ChartParseState, dispatch_line
from diagnostics import ChartOutOfMemoryError, ChartSourceError, DiagnosticLog
from line_scanner import iter_source_lines
from post_processor import run_post_processing


DEFAULT_ENCODINGS: Tuple[str, ...] = ("utf-8", "shift_jis")
DEFAULT_MAX_FILE_BYTES = 16 * 1024 * 1024


@dataclass(frozen=True)
class LoadResult:
    chart: Chart
    log: DiagnosticLog

    @property
    def diagnostic_count(self) -> int:
        return len(self.log)


@dataclass(frozen=True)
class LoadedChartFile:
    result: LoadResult
    source_path: Path
    encoding: str


def load_chart(chart: Chart, source: str) -> LoadResult:
    """Populate chart from source text. The returned log holds every diagnostic of this load."""
    log = DiagnosticLog()
    try:
        chart.reset()
        state = ChartParseState()
        for source_line in iter_source_lines(source):
            dispatch_line(chart, state, log, source_line)
        run_post_processing(chart, log)
    except MemoryError as exc:
        raise ChartOutOfMemoryError(f"Out of memory while loading chart ({len(log)} diagnostics so far)") from exc

    return LoadResult(chart=chart, log=log)


def load_chart_text(source: str) -> LoadResult:
    return load_chart(Chart(), source)


def decode_source_bytes(raw: bytes, *, encodings: Sequence[str]) -> Tuple[str, str]:
    """Decode raw chart bytes with the first encoding that accepts them.

    Returns (text, encoding_name).
    """
    if not encodings:
        raise ValueError("At least one encoding is required")

    last_error: Optional[UnicodeDecodeError] = None
    for encoding_name in encodings:
        try:
            return raw.decode(encoding_name), str(encoding_name)
        except UnicodeDecodeError as exc:
            last_error = exc
            continue
        except LookupError as exc:
            raise ValueError(f"Unknown text encoding: {encoding_name!r}") from exc

    raise ChartSourceError(
        f"Chart text is not valid in any of {list(encodings)}. Last error: {last_error}"
    ) from last_error


def _read_bytes(chart_path: Path, *, max_file_bytes: int) -> bytes:
    try:
        file_size = chart_path.stat().st_size
    except OSError as exc:
        raise ChartSourceError(f"Failed to read chart file: {chart_path}") from exc

    if file_size > int(max_file_bytes):
        raise ChartSourceError(f"Chart file too large ({file_size} bytes, limit {int(max_file_bytes)}): {chart_path}")

    try:
        return chart_path.read_bytes()
    except OSError as exc:
        raise ChartSourceError(f"Failed to read chart file: {chart_path}") from exc


def load_chart_file(
    chart_path: Path,
    *,
    encodings: Sequence[str] = DEFAULT_ENCODINGS,
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> LoadedChartFile:
    source_path = Path(chart_path)
    raw = _read_bytes(source_path, max_file_bytes=max_file_bytes)
    source_text, encoding_name = decode_source_bytes(raw, encodings=encodings)
    return LoadedChartFile(
        result=load_chart_text(source_text),
        source_path=source_path,
        encoding=encoding_name,
    )
