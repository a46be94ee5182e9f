# -*- coding: utf-8 -*-
########################
# bms_models.py
########################
# Purpose:
# - Core data models for decoded charts: timeline objects, tempo events, sectors and the Chart aggregate.
#
# Design notes:
# - Timeline objects are a closed union of five frozen dataclasses. Use object_kind() to dispatch;
#   it raises TypeError for anything outside the union.
# - time is None until TimeResolver stamps the object (dataclasses.replace, never mutation).
# - Chart is frozen. Its query methods delegate to TimeResolver and never mutate.
#
########################
# Interfaces:
# Public enums:
# - class ObjectKind(enum.Enum): BACKGROUND_AUDIO | BACKGROUND_IMAGE | PLAYABLE | INVISIBLE | DAMAGE
# - class PlayStyle(enum.Enum): SINGLE | DOUBLE
#
# Public dataclasses:
# - BackgroundAudio(position, key, time=None)
# - BackgroundImageLayer(position, key, layer, time=None)
# - PlayableNote(position, key, player, line, long_note_end=False, time=None)
# - InvisibleNote(position, key, player, line, time=None)
# - DamageNote(position, damage, player, line, time=None)
# - TempoChange(position, bpm)
# - Stop(position, beats)
# - Sector(position, time, bpm, inclusive)
# - ChartMetadata(...)
# - Chart(metadata, wavs, bmps, signatures, objects, sectors, source_path, media)
#   - resolve_signatures / position_to_time / time_to_fraction / time_to_position
#   - objects_of_kind / notes / duration_seconds / wav_path / bmp_path
#
# Public functions:
# - object_kind(obj) -> ObjectKind
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import paths
from bms_keys import KeyTable
from signature_table import SignatureTable
from time_resolver import TimeResolver


class ObjectKind(enum.Enum):
    BACKGROUND_AUDIO = "bgm"
    BACKGROUND_IMAGE = "bmp"
    PLAYABLE = "note"
    INVISIBLE = "invisible"
    DAMAGE = "damage"


class PlayStyle(enum.Enum):
    SINGLE = "single"
    DOUBLE = "double"


# Layer discriminators for BackgroundImageLayer.
LAYER_POOR = -1
LAYER_BASE = 0
LAYER_OVERLAY = 1


@dataclass(frozen=True)
class BackgroundAudio:
    position: float
    key: int
    time: Optional[float] = None


@dataclass(frozen=True)
class BackgroundImageLayer:
    position: float
    key: int
    layer: int
    time: Optional[float] = None


@dataclass(frozen=True)
class PlayableNote:
    position: float
    key: int
    player: int
    line: int
    long_note_end: bool = False
    time: Optional[float] = None


@dataclass(frozen=True)
class InvisibleNote:
    position: float
    key: int
    player: int
    line: int
    time: Optional[float] = None


@dataclass(frozen=True)
class DamageNote:
    position: float
    damage: int
    player: int
    line: int
    time: Optional[float] = None


TimelineObject = Union[BackgroundAudio, BackgroundImageLayer, PlayableNote, InvisibleNote, DamageNote]


def object_kind(obj: Any) -> ObjectKind:
    if isinstance(obj, BackgroundAudio):
        return ObjectKind.BACKGROUND_AUDIO
    if isinstance(obj, BackgroundImageLayer):
        return ObjectKind.BACKGROUND_IMAGE
    if isinstance(obj, PlayableNote):
        return ObjectKind.PLAYABLE
    if isinstance(obj, InvisibleNote):
        return ObjectKind.INVISIBLE
    if isinstance(obj, DamageNote):
        return ObjectKind.DAMAGE
    raise TypeError(f"Not a timeline object: {type(obj).__name__}")


@dataclass(frozen=True)
class TempoChange:
    position: float
    bpm: float


@dataclass(frozen=True)
class Stop:
    # Duration in measures of four beats (#STOPxx value / 192).
    position: float
    beats: float


TempoEvent = Union[TempoChange, Stop]


@dataclass(frozen=True)
class Sector:
    position: float
    time: float
    bpm: float
    inclusive: bool


@dataclass(frozen=True)
class ChartMetadata:
    player: int = 1
    genre: str = ""
    title: str = ""
    artist: str = ""
    subtitle: str = ""
    subartist: str = ""
    stagefile: Optional[Path] = None
    banner: Optional[Path] = None
    play_level: int = 0
    difficulty: int = 0
    total: float = 0.0
    rank: int = 2
    play_style: PlayStyle = PlayStyle.SINGLE


@dataclass(frozen=True)
class Chart:
    metadata: ChartMetadata
    wavs: KeyTable[Path]
    bmps: KeyTable[Path]
    signatures: SignatureTable
    objects: Tuple[TimelineObject, ...]
    sectors: Tuple[Sector, ...]
    source_path: Optional[Path] = None
    media: paths.MediaExtensions = field(default_factory=paths.MediaExtensions)
    _resolver: TimeResolver = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_resolver", TimeResolver(self.sectors, self.signatures))

    @property
    def base_bpm(self) -> float:
        return float(self.sectors[0].bpm)

    def resolve_signatures(self, position: float) -> float:
        return self._resolver.resolve_signatures(position)

    def position_to_time(self, position: float) -> float:
        return self._resolver.position_to_time(position)

    def time_to_fraction(self, time_seconds: float) -> float:
        return self._resolver.time_to_fraction(time_seconds)

    def time_to_position(self, time_seconds: float) -> float:
        return self._resolver.time_to_position(time_seconds)

    def objects_of_kind(self, kind: ObjectKind) -> List[TimelineObject]:
        return [obj for obj in self.objects if object_kind(obj) is kind]

    def notes(self) -> List[PlayableNote]:
        return [obj for obj in self.objects if isinstance(obj, PlayableNote)]

    def duration_seconds(self) -> float:
        if not self.objects:
            return 0.0
        return max(float(obj.time or 0.0) for obj in self.objects)

    def wav_path(self, key: int, *, extensions: Optional[paths.MediaExtensions] = None) -> Optional[Path]:
        """Return the on-disk file for a #WAVxx key, trying sibling extensions when the named one is missing."""
        declared = self.wavs.get(key)
        if declared is None:
            return None
        return paths.cascade_media_path(declared, extensions=extensions if extensions is not None else self.media)

    def bmp_path(self, key: int, *, extensions: Optional[paths.MediaExtensions] = None) -> Optional[Path]:
        declared = self.bmps.get(key)
        if declared is None:
            return None
        return paths.cascade_media_path(declared, extensions=extensions if extensions is not None else self.media)
