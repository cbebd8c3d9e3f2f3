"""
config.py

Typed configuration loading and validation for bmsflat.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- Work without any config file: defaults are a complete configuration
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If BMSFLAT_CONFIG_PATH is set, that file is used (and must exist).
- Otherwise bmsflat searches these paths in order and uses the first one that exists:
  1) ./bmsflat_config.json (current working directory)
  2) <user config dir>/bmsflat/bmsflat_config.json
  3) <user config dir>/bmsflat/config.json
- If none exists, built-in defaults are used.

Running this module prints the resolved config as JSON (exit code 2 when it fails to load).

Example config file (bmsflat_config.json)
{
  "loader": {
    "encodings": ["utf-8", "shift_jis"],
    "max_file_bytes": 16777216
  },
  "report": {
    "include_chart": false,
    "indent": 2
  }
}
"""

from __future__ import annotations

import codecs
import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator


class LoaderConfig(BaseModel):
    encodings: List[str] = Field(
        default_factory=lambda: ["utf-8", "shift_jis"],
        description="Text encodings tried in order when reading a chart file.",
    )
    max_file_bytes: int = Field(default=16 * 1024 * 1024, ge=1, description="Largest chart file accepted.")

    @field_validator("encodings")
    @classmethod
    def validate_encodings(cls, value: List[str]) -> List[str]:
        normalized: List[str] = []
        for item in value:
            name = (item or "").strip().lower()
            if not name:
                continue
            try:
                codecs.lookup(name)
            except LookupError as exception:
                raise ValueError(f"Unknown text encoding: {item!r}") from exception
            normalized.append(name)
        if not normalized:
            raise ValueError("encodings must list at least one encoding")
        return normalized


class ReportConfig(BaseModel):
    include_chart: bool = Field(default=False, description="Include the parsed chart in the JSON report.")
    indent: int = Field(default=2, ge=0, le=8, description="JSON indent for the report.")


class AppConfig(BaseModel):
    loader: LoaderConfig = Field(default_factory=LoaderConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("bmsflat", appauthor=False))
    return [
        Path.cwd() / "bmsflat_config.json",
        config_directory / "bmsflat_config.json",
        config_directory / "config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("BMSFLAT_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Override variables:
    - BMSFLAT_ENCODINGS (comma separated)
    - BMSFLAT_MAX_FILE_BYTES
    - BMSFLAT_INCLUDE_CHART
    - BMSFLAT_REPORT_INDENT
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            return section
        section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    loader_section = ensure_nested(updated_config, "loader")
    report_section = ensure_nested(updated_config, "report")

    def override_list(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        target_dict[key_name] = [item.strip() for item in value_text.split(",") if item.strip()]

    def override_int(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            return
        try:
            target_dict[key_name] = int(value_text)
        except ValueError:
            return

    def override_bool(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip().lower()
        if not value_text:
            return
        truthy = {"1", "true", "yes", "on"}
        falsy = {"0", "false", "no", "off"}
        if value_text in truthy:
            target_dict[key_name] = True
        elif value_text in falsy:
            target_dict[key_name] = False

    override_list("BMSFLAT_ENCODINGS", loader_section, "encodings")
    override_int("BMSFLAT_MAX_FILE_BYTES", loader_section, "max_file_bytes")

    override_bool("BMSFLAT_INCLUDE_CHART", report_section, "include_chart")
    override_int("BMSFLAT_REPORT_INDENT", report_section, "indent")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[AppConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = AppConfig.model_validate(json_dict)
    except ValidationError as exception:
        where = str(resolved_path) if resolved_path is not None else "built-in defaults"
        raise ValueError(f"Config validation failed for {where}:\n{exception}") from exception

    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[AppConfig, Optional[Path]]:
    return load_config()


def to_json(config: AppConfig) -> str:
    return json.dumps(config.model_dump(), ensure_ascii=False, indent=2)


def main() -> int:
    try:
        config, resolved_path = load_config()
    except Exception as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": None if resolved_path is None else str(resolved_path),
        "config": json.loads(to_json(config)),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
