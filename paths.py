# -*- coding: utf-8 -*-
########################
# paths.py
########################
# Purpose:
# - Filesystem path helpers for assets referenced by a chart (#WAVxx, #BMPxx, #STAGEFILE, #BANNER).
#
# Design notes:
# - Asset names are relative to the chart's directory. Backslashes are treated as separators.
# - The media cascade only probes sibling files; it never creates or moves anything.
# - No Qt usage. Return pathlib.Path only.
#
########################
# Interfaces:
# Public dataclasses:
# - MediaExtensions(audio: tuple[str,...], image: tuple[str,...], video: tuple[str,...])
#
# Public functions:
# - join_asset_path(base_dir: pathlib.Path, asset_name: str) -> pathlib.Path
# - cascade_media_path(path: pathlib.Path, *, extensions: Optional[MediaExtensions] = None) -> Optional[pathlib.Path]
#
# Inputs:
# - Chart directory and asset names from directive values.
#
# Outputs:
# - Paths stored on the Chart, and the on-disk file to use for a declared asset.
#
########################

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple


@dataclass(frozen=True)
class MediaExtensions:
    audio: Tuple[str, ...] = (".wav", ".ogg", ".mp3")
    image: Tuple[str, ...] = (".bmp", ".png", ".jpg")
    video: Tuple[str, ...] = (".mpg", ".mp4", ".webm")

    def family_of(self, suffix: str) -> Tuple[str, ...]:
        normalized = str(suffix or "").lower()
        for family in (self.audio, self.image, self.video):
            if normalized in family:
                return family
        return ()


def join_asset_path(base_dir: Path, asset_name: str) -> Path:
    name_text = str(asset_name or "").strip().replace("\\", "/")
    return Path(base_dir) / name_text


def cascade_media_path(path: Path, *, extensions: Optional[MediaExtensions] = None) -> Optional[Path]:
    """Return ``path`` if it exists, else the first sibling with another extension of the same media family.

    Charts often declare ``kick.wav`` while shipping ``kick.ogg``. Unknown
    extensions and misses return None.
    """
    declared_path = Path(path)
    if declared_path.is_file():
        return declared_path

    media_extensions = extensions if extensions is not None else MediaExtensions()
    family = media_extensions.family_of(declared_path.suffix)
    for suffix in family:
        candidate_path = declared_path.with_suffix(suffix)
        if candidate_path.is_file():
            return candidate_path
    return None
