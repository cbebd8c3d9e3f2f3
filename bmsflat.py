"""
bmsflat.py

Command line entrypoint: load one BMS chart and print a JSON report of its diagnostics.

Output
- {"ok": true, "path": ..., "encoding": ..., "diagnostic_count": N, "diagnostics": [{"line": n, "message": ...}]}
- "chart" is added when --include-chart is given or report.include_chart is set in the config.
- {"ok": false, "error": ...} when the chart or the config cannot be loaded.

Exit codes
- 0: chart loaded without diagnostics
- 1: chart loaded with diagnostics
- 2: chart or config could not be loaded
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import bms_store
from config import AppConfig, get_config, load_config
from diagnostics import ChartLoadError


def _build_argument_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(description="Load a BMS chart and report diagnostics as JSON.")
    argument_parser.add_argument("chart_path", type=Path, help="Path to the .bms/.bme/.bml chart file.")
    argument_parser.add_argument("--config", type=Path, default=None, help="Explicit config JSON file.")
    argument_parser.add_argument(
        "--encoding",
        action="append",
        default=None,
        help="Text encoding to try (repeatable). Overrides loader.encodings.",
    )
    argument_parser.add_argument("--include-chart", action="store_true", help="Include the parsed chart in the report.")
    return argument_parser


def _resolve_app_config(config_path: Optional[Path]) -> AppConfig:
    if config_path is not None:
        app_config, _resolved_path = load_config(config_path)
    else:
        app_config, _resolved_path = get_config()
    return app_config


def build_report(loaded: bms_store.LoadedChartFile, *, include_chart: bool) -> Dict[str, Any]:
    result = loaded.result
    payload: Dict[str, Any] = {
        "ok": True,
        "path": str(loaded.source_path),
        "encoding": loaded.encoding,
        "diagnostic_count": result.diagnostic_count,
        "diagnostics": result.log.to_payload(),
    }
    if include_chart:
        payload["chart"] = result.chart.to_payload()
    return payload


def main(argv: Optional[Sequence[str]] = None) -> int:
    parsed_args = _build_argument_parser().parse_args(argv)

    try:
        app_config = _resolve_app_config(parsed_args.config)
    except Exception as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    encodings: List[str] = list(parsed_args.encoding or app_config.loader.encodings)
    indent = int(app_config.report.indent) or None

    try:
        loaded = bms_store.load_chart_file(
            parsed_args.chart_path,
            encodings=encodings,
            max_file_bytes=int(app_config.loader.max_file_bytes),
        )
    except (ChartLoadError, ValueError) as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=indent))
        return 2

    include_chart = bool(parsed_args.include_chart or app_config.report.include_chart)
    print(json.dumps(build_report(loaded, include_chart=include_chart), ensure_ascii=False, indent=indent))
    return 1 if loaded.result.diagnostic_count > 0 else 0


if __name__ == "__main__":
    raise SystemExit(main())
