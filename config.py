"""
config.py

Typed configuration loading and validation for bmschart.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- A missing config file is not an error: the parser runs on defaults

Config file location
- If BMSCHART_CONFIG_PATH is set, that file is used (and must exist).
- Otherwise these paths are searched in order and the first one that exists is used:
  1) ./bmschart_config.json (current working directory)
  2) <user config dir>/bmschart/bmschart/bmschart_config.json
  3) <user config dir>/bmschart/bmschart/config.json

Example config file (bmschart_config.json)
{
  "parser": {
    "base_bpm": 130.0,
    "max_measures": 1000,
    "random_seed": 7,
    "encodings": ["utf-8", "cp932"],
    "skip_malformed_lines": false
  },
  "media": {
    "audio_extensions": [".wav", ".ogg", ".mp3"],
    "image_extensions": [".bmp", ".png", ".jpg"],
    "video_extensions": [".mpg", ".mp4", ".webm"]
  }
}
"""

from __future__ import annotations

import codecs
import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError, field_validator

import paths


class ParserConfig(BaseModel):
    base_bpm: float = Field(default=130.0, gt=0.0, description="Tempo used when the chart has no #BPM line.")
    max_measures: int = Field(default=1000, ge=1, le=100000, description="Size of the measure signature table.")
    random_seed: Optional[int] = Field(default=None, description="Seed for #RANDOM draws. None draws from entropy.")
    encodings: List[str] = Field(
        default_factory=lambda: ["utf-8", "cp932"],
        description="Text encodings tried in order when reading a chart.",
    )
    skip_malformed_lines: bool = Field(
        default=False,
        description="Log and skip lines with malformed numbers instead of failing the whole chart.",
    )

    @field_validator("encodings")
    @classmethod
    def validate_encodings(cls, value: List[str]) -> List[str]:
        normalized: List[str] = []
        for name in value:
            name_text = str(name or "").strip()
            if not name_text:
                continue
            try:
                codecs.lookup(name_text)
            except LookupError as exception:
                raise ValueError(f"Unknown text encoding: {name_text!r}") from exception
            normalized.append(name_text)
        if not normalized:
            raise ValueError("encodings must name at least one text encoding")
        return normalized


def _normalize_extensions(value: List[str]) -> List[str]:
    normalized: List[str] = []
    for item in value:
        item_text = str(item or "").strip().lower()
        if not item_text:
            continue
        if not item_text.startswith("."):
            item_text = "." + item_text
        normalized.append(item_text)
    return normalized


class MediaConfig(BaseModel):
    audio_extensions: List[str] = Field(default_factory=lambda: [".wav", ".ogg", ".mp3"])
    image_extensions: List[str] = Field(default_factory=lambda: [".bmp", ".png", ".jpg"])
    video_extensions: List[str] = Field(default_factory=lambda: [".mpg", ".mp4", ".webm"])

    @field_validator("audio_extensions", "image_extensions", "video_extensions")
    @classmethod
    def normalize_extension_lists(cls, value: List[str]) -> List[str]:
        return _normalize_extensions(value)

    def to_media_extensions(self) -> paths.MediaExtensions:
        return paths.MediaExtensions(
            audio=tuple(self.audio_extensions),
            image=tuple(self.image_extensions),
            video=tuple(self.video_extensions),
        )


class AppConfig(BaseModel):
    parser: ParserConfig = Field(default_factory=ParserConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir("bmschart", "bmschart"))
    return [
        Path.cwd() / "bmschart_config.json",
        config_directory / "bmschart_config.json",
        config_directory / "config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("BMSCHART_CONFIG_PATH", "").strip()
    if explicit_path_text:
        explicit_path = Path(explicit_path_text)
        if not explicit_path.exists():
            raise FileNotFoundError(f"BMSCHART_CONFIG_PATH points to a missing file: {explicit_path}")
        return explicit_path

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


def _env_bool(value_text: str) -> bool:
    lowered = value_text.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"not a boolean: {value_text!r}")


def _env_list(value_text: str) -> List[str]:
    return [item.strip() for item in value_text.split(",") if item.strip()]


# (environment variable, ParserConfig field, converter)
_PARSER_ENVIRONMENT_OVERRIDES: Tuple[Tuple[str, str, Callable[[str], Any]], ...] = (
    ("BMSCHART_BASE_BPM", "base_bpm", float),
    ("BMSCHART_MAX_MEASURES", "max_measures", int),
    ("BMSCHART_RANDOM_SEED", "random_seed", int),
    ("BMSCHART_ENCODINGS", "encodings", _env_list),
    ("BMSCHART_SKIP_MALFORMED_LINES", "skip_malformed_lines", _env_bool),
)


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Environment overrides are optional and win over the config file.

    Unparseable values are ignored so a stray variable cannot break loading.
    See _PARSER_ENVIRONMENT_OVERRIDES for the variable names.
    """
    updated_config = dict(config_dict)
    parser_section = updated_config.get("parser")
    parser_section = dict(parser_section) if isinstance(parser_section, dict) else {}

    for env_name, field_name, convert in _PARSER_ENVIRONMENT_OVERRIDES:
        value_text = os.environ.get(env_name, "").strip()
        if not value_text:
            continue
        try:
            parser_section[field_name] = convert(value_text)
        except ValueError:
            continue

    updated_config["parser"] = parser_section
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
        source_text = str(resolved_path) if resolved_path is not None else "environment"
        raise ValueError(f"Config validation failed for {source_text}:\n{exception}") from exception

    return config, resolved_path


def main() -> int:
    try:
        config, resolved_path = load_config()
    except (OSError, ValueError) as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": config.model_dump(),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
