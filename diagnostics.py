# -*- coding: utf-8 -*-
########################
# diagnostics.py
########################
# Purpose:
# - Diagnostic log for chart loading: ordered (line, message) records of every recoverable anomaly.
# - Exception types for the few conditions that do abort a load.
#
# Design notes:
# - One DiagnosticLog per load. bms_store creates it and hands it back with the chart.
# - Line -1 addresses notices that do not belong to a single source line (default substitution).
# - Messages are bounded to MESSAGE_MAX_LEN - 1 characters and truncated silently beyond that.
#
########################
# Interfaces:
# Public exceptions:
# - class ChartLoadError(Exception)
# - class ChartSourceError(ChartLoadError)
# - class ChartOutOfMemoryError(ChartLoadError)
#
# Public dataclasses:
# - Diagnostic(line: int, message: str)
#
# Public classes:
# - class DiagnosticLog
#   - emit(line: int, message: str) -> Diagnostic
#   - reset() -> None
#   - entries() -> list[Diagnostic]
#   - to_payload() -> list[dict]
#
########################

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List


MESSAGE_MAX_LEN = 64
NO_LINE = -1


class ChartLoadError(Exception):
    """Base error for failures that stop a chart load."""


class ChartSourceError(ChartLoadError):
    """Raised when the chart source cannot be read or decoded."""


class ChartOutOfMemoryError(ChartLoadError):
    """Raised when growing the log, a track or a table fails to allocate."""


@dataclass(frozen=True)
class Diagnostic:
    line: int
    message: str


class DiagnosticLog:
    def __init__(self) -> None:
        self._entries: List[Diagnostic] = []

    def emit(self, line: int, message: str) -> Diagnostic:
        entry = Diagnostic(line=int(line), message=str(message)[: MESSAGE_MAX_LEN - 1])
        self._entries.append(entry)
        return entry

    def reset(self) -> None:
        self._entries.clear()

    def entries(self) -> List[Diagnostic]:
        return list(self._entries)

    def to_payload(self) -> List[Dict[str, Any]]:
        return [{"line": entry.line, "message": entry.message} for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> Diagnostic:
        return self._entries[index]
