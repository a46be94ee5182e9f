# -*- coding: utf-8 -*-
########################
# bms_store.py
########################
# Purpose:
# - Parse BMS chart files (.bms / .bme / .bml) into a fully time-resolved bms_models.Chart.
# - Own the single forward pass: conditional gating, directive dispatch, channel decoding,
#   then sector construction and time stamping.
#
# Design notes:
# - No Qt usage. Pure parsing.
# - Directives are case-insensitive. Unknown directives and channels are ignored.
# - Malformed numbers fail the whole parse unless ParserConfig.skip_malformed_lines is set.
# - Never return a partial Chart: every fatal error propagates as a BmsError subclass.
#
########################
# Interfaces:
# Public functions:
# - load_chart(chart_path: pathlib.Path, *, config: Optional[AppConfig] = None, rng=None) -> Chart
# - parse_chart_lines(
#     lines: Iterable[str],
#     *,
#     base_dir: pathlib.Path,
#     config: Optional[AppConfig] = None,
#     rng=None,
#     source_path: Optional[pathlib.Path] = None,
#   ) -> Chart
# - split_nested_subtitle(title: str) -> tuple[str, Optional[str]]
#
# Inputs:
# - Chart path or already-decoded text lines, plus config and an optional random source.
#
# Outputs:
# - Immutable Chart with sorted, time-stamped objects and its sector sequence.
#
########################

from __future__ import annotations

import logging
import random
import re
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Tuple, Union

import paths
from bms_errors import (
    BmsError,
    ChartFileNotFoundError,
    IndexOutOfRangeError,
    MalformedNumericLiteralError,
)
from bms_keys import KeyTable, parse_base36, parse_float, parse_int
from bms_models import (
    Chart,
    ChartMetadata,
    DamageNote,
    InvisibleNote,
    PlayableNote,
    PlayStyle,
    TimelineObject,
)
from channel_decoder import ChannelDecoder
from conditional_scanner import ConditionalScanner, DrawSource
from config import AppConfig
from signature_table import SignatureTable
from tempo_timeline import build_sectors
from time_resolver import TimeResolver


logger = logging.getLogger(__name__)


CHART_SUFFIXES = (".bms", ".bme", ".bml", ".pms")

_FLAGS = re.IGNORECASE

_SIGNATURE_RE = re.compile(r"^\s*#(\d{3})02:(.*?)\s*$", _FLAGS)
_CHANNEL_RE = re.compile(r"^\s*#(\d{3})([0-9A-Z]{2}):(.*?)\s*$", _FLAGS)
_WAV_RE = re.compile(r"^\s*#WAV([0-9A-Z]{2})\s+(.*?)\s*$", _FLAGS)
_BMP_RE = re.compile(r"^\s*#BMP([0-9A-Z]{2})\s+(.*?)\s*$", _FLAGS)
_BPM_TABLE_RE = re.compile(r"^\s*#BPM([0-9A-Z]{2})(?:\s+(.*?))?\s*$", _FLAGS)
_BPM_RE = re.compile(r"^\s*#BPM\s*(.*?)\s*$", _FLAGS)
_STOP_RE = re.compile(r"^\s*#STOP([0-9A-Z]{2})\s+(.*?)\s*$", _FLAGS)
_LNOBJ_RE = re.compile(r"^\s*#LNOBJ\s+(.*?)\s*$", _FLAGS)


def _text_directive(name: str) -> Pattern[str]:
    return re.compile(r"^\s*#" + name + r"(?:\s+(.*?))?\s*$", _FLAGS)


_GENRE_RE = _text_directive("GENRE")
_TITLE_RE = _text_directive("TITLE")
_SUBTITLE_RE = _text_directive("SUBTITLE")
_ARTIST_RE = _text_directive("ARTIST")
_SUBARTIST_RE = _text_directive("SUBARTIST")
_STAGEFILE_RE = _text_directive("STAGEFILE")
_BANNER_RE = _text_directive("BANNER")
_PLAYLEVEL_RE = _text_directive("PLAYLEVEL")
_DIFFICULTY_RE = _text_directive("DIFFICULTY")
_TOTAL_RE = _text_directive("TOTAL")
_RANK_RE = _text_directive("RANK")
_PLAYER_RE = _text_directive("PLAYER")

# Trailing bracket pairs that mark a subtitle embedded in #TITLE.
_NESTED_SUBTITLE_PAIRS = (
    ("(", ")"),
    ("[", "]"),
    ("<", ">"),
    ('"', '"'),
    ("-", "-"),
    ("～", "～"),
    ("~", "~"),
)

# #PLAYER 3 is the double-play layout.
_PLAYER_DOUBLE = 3


def split_nested_subtitle(title: str) -> Tuple[str, Optional[str]]:
    """Split ``"Song [Another]"`` into ``("Song", "[Another]")``.

    Returns the title unchanged and None when it does not end in a bracketed part.
    """
    title_text = str(title or "").strip()
    if len(title_text) < 3:
        return title_text, None
    for opener, closer in _NESTED_SUBTITLE_PAIRS:
        if not title_text.endswith(closer):
            continue
        open_index = title_text[:-1].rfind(opener)
        if open_index <= 0:
            continue
        main_title = title_text[:open_index].rstrip()
        inner_text = title_text[open_index + 1:-1].strip()
        if not main_title or not inner_text:
            continue
        return main_title, f"[{inner_text}]"
    return title_text, None


class _ChartBuilder:
    """Mutable state of one parse pass. Discarded once the Chart is built."""

    def __init__(self, *, base_dir: Path, config: AppConfig) -> None:
        self.base_dir = Path(base_dir)
        self.config = config
        self.text_fields: Dict[str, str] = {}
        self.player = 1
        self.play_level = 0
        self.difficulty = 0
        self.total = 0.0
        self.rank = 2
        self.stagefile: Optional[Path] = None
        self.banner: Optional[Path] = None
        self.explicit_subtitle: Optional[str] = None
        self.base_bpm = float(config.parser.base_bpm)
        self.wavs: KeyTable[Path] = KeyTable("WAV")
        self.bmps: KeyTable[Path] = KeyTable("BMP")
        self.signatures = SignatureTable(config.parser.max_measures)
        self.decoder = ChannelDecoder()
        self._handlers: List[Tuple[Pattern[str], Callable[[re.Match], None]]] = [
            (_SIGNATURE_RE, self._on_signature),
            (_CHANNEL_RE, self._on_channel),
            (_WAV_RE, self._on_wav),
            (_BMP_RE, self._on_bmp),
            (_BPM_TABLE_RE, self._on_bpm_table),
            (_BPM_RE, self._on_bpm),
            (_STOP_RE, self._on_stop),
            (_LNOBJ_RE, self._on_lnobj),
            (_GENRE_RE, self._text_handler("genre")),
            (_TITLE_RE, self._text_handler("title")),
            (_SUBTITLE_RE, self._on_subtitle),
            (_ARTIST_RE, self._text_handler("artist")),
            (_SUBARTIST_RE, self._text_handler("subartist")),
            (_STAGEFILE_RE, self._on_stagefile),
            (_BANNER_RE, self._on_banner),
            (_PLAYLEVEL_RE, self._on_play_level),
            (_DIFFICULTY_RE, self._on_difficulty),
            (_TOTAL_RE, self._on_total),
            (_RANK_RE, self._on_rank),
            (_PLAYER_RE, self._on_player),
        ]

    def apply(self, line: str) -> bool:
        """Dispatch one active line. Returns False when nothing recognised it."""
        if not line.lstrip().startswith("#"):
            return False
        for pattern, handler in self._handlers:
            match = pattern.match(line)
            if match:
                handler(match)
                return True
        logger.debug("Ignoring unrecognised directive: %r", line.strip())
        return False

    def _text_handler(self, field_name: str) -> Callable[[re.Match], None]:
        def handle(match: re.Match) -> None:
            self.text_fields[field_name] = str(match.group(1) or "").strip()

        return handle

    def _on_subtitle(self, match: re.Match) -> None:
        self.explicit_subtitle = str(match.group(1) or "").strip()

    def _on_stagefile(self, match: re.Match) -> None:
        name_text = str(match.group(1) or "").strip()
        self.stagefile = paths.join_asset_path(self.base_dir, name_text) if name_text else None

    def _on_banner(self, match: re.Match) -> None:
        name_text = str(match.group(1) or "").strip()
        self.banner = paths.join_asset_path(self.base_dir, name_text) if name_text else None

    def _on_play_level(self, match: re.Match) -> None:
        self.play_level = parse_int(match.group(1) or "", what="#PLAYLEVEL")

    def _on_difficulty(self, match: re.Match) -> None:
        self.difficulty = parse_int(match.group(1) or "", what="#DIFFICULTY")

    def _on_total(self, match: re.Match) -> None:
        self.total = parse_float(match.group(1) or "", what="#TOTAL")

    def _on_rank(self, match: re.Match) -> None:
        self.rank = parse_int(match.group(1) or "", what="#RANK")

    def _on_player(self, match: re.Match) -> None:
        self.player = parse_int(match.group(1) or "", what="#PLAYER")

    def _on_wav(self, match: re.Match) -> None:
        self.wavs.set(parse_base36(match.group(1)), paths.join_asset_path(self.base_dir, match.group(2)))

    def _on_bmp(self, match: re.Match) -> None:
        self.bmps.set(parse_base36(match.group(1)), paths.join_asset_path(self.base_dir, match.group(2)))

    def _on_bpm(self, match: re.Match) -> None:
        bpm = parse_float(match.group(1), what="#BPM")
        if bpm <= 0.0:
            raise MalformedNumericLiteralError(f"#BPM must be positive, got {bpm!r}")
        self.base_bpm = bpm

    def _on_bpm_table(self, match: re.Match) -> None:
        key_text, value_text = match.group(1), match.group(2)
        if not value_text:
            raise MalformedNumericLiteralError(f"#BPM{key_text.upper()} has no value")
        self.decoder.set_bpm(parse_base36(key_text), parse_float(value_text, what="#BPMxx"))

    def _on_stop(self, match: re.Match) -> None:
        self.decoder.set_stop(parse_base36(match.group(1)), parse_int(match.group(2), what="#STOPxx"))

    def _on_lnobj(self, match: re.Match) -> None:
        for key_text in str(match.group(1)).split():
            self.decoder.add_long_note_end_key(parse_base36(key_text))

    def _check_measure(self, measure: int) -> int:
        if measure >= self.signatures.max_measures:
            raise IndexOutOfRangeError(f"Measure {measure} outside 0..{self.signatures.max_measures - 1}")
        return measure

    def _on_signature(self, match: re.Match) -> None:
        measure = self._check_measure(int(match.group(1)))
        self.signatures.set(measure, parse_float(match.group(2), what="measure length"))

    def _on_channel(self, match: re.Match) -> None:
        measure = self._check_measure(int(match.group(1)))
        self.decoder.decode(measure, match.group(2).upper(), match.group(3))

    def _play_style(self, objects: List[TimelineObject]) -> PlayStyle:
        if self.player == _PLAYER_DOUBLE:
            return PlayStyle.DOUBLE
        for obj in objects:
            if isinstance(obj, (PlayableNote, InvisibleNote, DamageNote)) and obj.player == 2:
                return PlayStyle.DOUBLE
        return PlayStyle.SINGLE

    def build(self, *, source_path: Optional[Path]) -> Chart:
        objects, tempo_events = self.decoder.finish()
        sectors = build_sectors(tempo_events, self.signatures, self.base_bpm)
        resolver = TimeResolver(sectors, self.signatures)

        stamped_objects = resolver.stamp(objects)
        stamped_objects.sort(key=lambda obj: float(obj.position))

        title_text = self.text_fields.get("title", "")
        subtitle_text = self.explicit_subtitle
        if subtitle_text is None:
            title_text, subtitle_text = split_nested_subtitle(title_text)

        metadata = ChartMetadata(
            player=int(self.player),
            genre=self.text_fields.get("genre", ""),
            title=title_text,
            artist=self.text_fields.get("artist", ""),
            subtitle=subtitle_text or "",
            subartist=self.text_fields.get("subartist", ""),
            stagefile=self.stagefile,
            banner=self.banner,
            play_level=int(self.play_level),
            difficulty=int(self.difficulty),
            total=float(self.total),
            rank=int(self.rank),
            play_style=self._play_style(stamped_objects),
        )

        return Chart(
            metadata=metadata,
            wavs=self.wavs,
            bmps=self.bmps,
            signatures=self.signatures,
            objects=tuple(stamped_objects),
            sectors=tuple(sectors),
            source_path=source_path,
            media=self.config.media.to_media_extensions(),
        )


def parse_chart_lines(
    lines: Iterable[str],
    *,
    base_dir: Path,
    config: Optional[AppConfig] = None,
    rng: Optional[DrawSource] = None,
    source_path: Optional[Path] = None,
) -> Chart:
    app_config = config if config is not None else AppConfig()
    draw_source: DrawSource = rng if rng is not None else random.Random(app_config.parser.random_seed)

    scanner = ConditionalScanner(draw_source)
    builder = _ChartBuilder(base_dir=Path(base_dir), config=app_config)
    skip_malformed = bool(app_config.parser.skip_malformed_lines)

    for line_number, raw_line in enumerate(lines, start=1):
        line_text = str(raw_line).rstrip("\r\n")
        try:
            if scanner.feed(line_text):
                continue
            if not scanner.is_active():
                continue
            builder.apply(line_text)
        except MalformedNumericLiteralError as exc:
            if skip_malformed:
                logger.warning("Skipping line %d: %s", line_number, exc.message)
                continue
            raise exc.with_line_number(line_number)
        except BmsError as exc:
            raise exc.with_line_number(line_number)

    scanner.finish()
    chart = builder.build(source_path=source_path)
    logger.debug(
        "Parsed %s: %d objects, %d sectors",
        source_path if source_path is not None else "<lines>",
        len(chart.objects),
        len(chart.sectors),
    )
    return chart


def _read_chart_lines(chart_path: Path, encodings: Iterable[str]) -> List[str]:
    try:
        raw_bytes = Path(chart_path).read_bytes()
    except OSError as exc:
        raise ChartFileNotFoundError(f"Failed to read chart: {chart_path}") from exc

    last_error: Optional[UnicodeDecodeError] = None
    for encoding in encodings:
        try:
            text = raw_bytes.decode(encoding)
        except UnicodeDecodeError as exc:
            last_error = exc
            continue
        if encoding.lower() != "utf-8":
            logger.debug("Decoded %s as %s", chart_path, encoding)
        return text.lstrip("\ufeff").splitlines()

    raise ChartFileNotFoundError(f"Chart is not readable in any configured encoding: {chart_path}") from last_error


def load_chart(
    chart_path: Union[str, Path],
    *,
    config: Optional[AppConfig] = None,
    rng: Optional[DrawSource] = None,
) -> Chart:
    app_config = config if config is not None else AppConfig()
    resolved_path = Path(chart_path)
    if not resolved_path.is_file():
        raise ChartFileNotFoundError(f"Chart file not found: {resolved_path}")
    if resolved_path.suffix.lower() not in CHART_SUFFIXES:
        logger.warning("Unexpected chart suffix %r, parsing %s as BMS anyway", resolved_path.suffix, resolved_path)

    lines = _read_chart_lines(resolved_path, app_config.parser.encodings)
    return parse_chart_lines(
        lines,
        base_dir=resolved_path.parent,
        config=app_config,
        rng=rng,
        source_path=resolved_path,
    )
