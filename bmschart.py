"""
bmschart.py

Command line entrypoint: parse one BMS chart and print a JSON summary.

Integration
- Loads config (file, environment overrides, then command line overrides)
- Parses the chart through bms_store.load_chart
- Prints metadata, object counts per kind, the sector sequence and optional time queries

Exit codes
- 0 on success
- 2 when the chart or config cannot be loaded
"""

from __future__ import annotations

import argparse
import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

import bms_store
from bms_errors import BmsError
from bms_models import Chart, ObjectKind, object_kind
from config import AppConfig, load_config


def _object_payload(obj: Any) -> Dict[str, Any]:
    payload = {"kind": object_kind(obj).value}
    for field_name, value in vars(obj).items():
        payload[field_name] = value
    return payload


def _chart_summary(chart: Chart, *, include_objects: bool) -> Dict[str, Any]:
    metadata = chart.metadata
    counts = {kind.value: len(chart.objects_of_kind(kind)) for kind in ObjectKind}
    summary: Dict[str, Any] = {
        "source_path": str(chart.source_path) if chart.source_path is not None else None,
        "metadata": {
            "player": metadata.player,
            "genre": metadata.genre,
            "title": metadata.title,
            "subtitle": metadata.subtitle,
            "artist": metadata.artist,
            "subartist": metadata.subartist,
            "stagefile": str(metadata.stagefile) if metadata.stagefile is not None else None,
            "banner": str(metadata.banner) if metadata.banner is not None else None,
            "play_level": metadata.play_level,
            "difficulty": metadata.difficulty,
            "total": metadata.total,
            "rank": metadata.rank,
            "play_style": metadata.play_style.value,
        },
        "base_bpm": chart.base_bpm,
        "duration_seconds": chart.duration_seconds(),
        "object_counts": counts,
        "signature_overrides": {str(measure): length for measure, length in sorted(chart.signatures.overrides().items())},
        "sectors": [
            {"position": sector.position, "time": sector.time, "bpm": sector.bpm, "inclusive": sector.inclusive}
            for sector in chart.sectors
        ],
    }
    if include_objects:
        summary["objects"] = [_object_payload(obj) for obj in chart.objects]
    return summary


def _apply_overrides(app_config: AppConfig, parsed_args: argparse.Namespace) -> AppConfig:
    parser_updates: Dict[str, Any] = {}
    if parsed_args.seed is not None:
        parser_updates["random_seed"] = int(parsed_args.seed)
    if parsed_args.skip_malformed:
        parser_updates["skip_malformed_lines"] = True
    if not parser_updates:
        return app_config
    return app_config.model_copy(update={"parser": app_config.parser.model_copy(update=parser_updates)})


def main(argv: Optional[List[str]] = None) -> int:
    argument_parser = argparse.ArgumentParser(description="Parse a BMS chart and print its resolved timeline")
    argument_parser.add_argument("chart", type=Path, help="Path to a .bms/.bme/.bml file.")
    argument_parser.add_argument("--config", type=Path, default=None, help="Explicit config JSON file.")
    argument_parser.add_argument("--seed", type=int, default=None, help="Seed for #RANDOM draws.")
    argument_parser.add_argument("--skip-malformed", action="store_true", help="Skip lines with malformed numbers.")
    argument_parser.add_argument("--objects", action="store_true", help="Include every timeline object in the output.")
    argument_parser.add_argument(
        "--time-to-fraction",
        type=float,
        action="append",
        default=[],
        metavar="SECONDS",
        help="Report the resolved fraction and chart position at this time. May repeat.",
    )
    argument_parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logs.")
    parsed_args = argument_parser.parse_args(argv)

    log_level = logging.WARNING
    if parsed_args.verbose == 1:
        log_level = logging.INFO
    elif parsed_args.verbose >= 2:
        log_level = logging.DEBUG
    logging.basicConfig(level=log_level, format="%(levelname)s %(name)s: %(message)s")

    try:
        app_config, _config_path = load_config(parsed_args.config)
    except (OSError, ValueError) as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    app_config = _apply_overrides(app_config, parsed_args)
    rng = random.Random(app_config.parser.random_seed)

    try:
        chart = bms_store.load_chart(parsed_args.chart, config=app_config, rng=rng)
    except BmsError as exception:
        print(json.dumps({"ok": False, "error": str(exception), "kind": type(exception).__name__}, ensure_ascii=False, indent=2))
        return 2

    output: Dict[str, Any] = {"ok": True, "chart": _chart_summary(chart, include_objects=bool(parsed_args.objects))}
    if parsed_args.time_to_fraction:
        output["time_queries"] = [
            {
                "time": float(time_seconds),
                "fraction": chart.time_to_fraction(time_seconds),
                "position": chart.time_to_position(time_seconds),
            }
            for time_seconds in parsed_args.time_to_fraction
        ]
    print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
