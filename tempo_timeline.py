# -*- coding: utf-8 -*-
########################
# tempo_timeline.py
########################
# Purpose:
# - Build the ordered sector sequence from the tempo changes and stops collected during decoding.
#
# Key Logic:
# - Events are stable-sorted by position; equal positions keep source order.
# - Each event is timed against the active sector (time_resolver.find_active_sector).
# - TempoChange appends one inclusive sector.
# - Stop appends a freeze sector (bpm 0, inclusive) and a resume sector (previous bpm, exclusive).
#   Objects exactly on the stop position resolve to the freeze; later objects to the resume.
# - An event that lands on a freeze started at the very same position is anchored on the latest
#   sector at that position instead of the freeze:
#   - a further Stop extends the resume, stops accumulate
#   - a TempoChange becomes an exclusive sector so objects on the position stay frozen
#   - either one replaces the exclusive sectors already stacked there, so only one sector ends the freeze
#
########################
# Interfaces:
# Public functions:
# - build_sectors(events: Iterable[TempoEvent], signatures: SignatureTable, base_bpm: float) -> list[Sector]
# - initial_sector(base_bpm: float) -> Sector
#
########################

from __future__ import annotations

import logging
from typing import Iterable, List

from bms_models import Sector, Stop, TempoChange, TempoEvent
from signature_table import SignatureTable
from time_resolver import SECONDS_PER_MEASURE_AT_1BPM, find_active_sector


logger = logging.getLogger(__name__)


def initial_sector(base_bpm: float) -> Sector:
    return Sector(position=0.0, time=0.0, bpm=float(base_bpm), inclusive=True)


def _elapsed_at(anchor: Sector, position: float, signatures: SignatureTable) -> float:
    if anchor.bpm > 0.0:
        delta = signatures.weighted_delta(anchor.position, position)
        return float(anchor.time) + delta * SECONDS_PER_MEASURE_AT_1BPM / float(anchor.bpm)
    return float(anchor.time)


def _stop_seconds(beats: float, bpm: float) -> float:
    if bpm > 0.0:
        return float(beats) * SECONDS_PER_MEASURE_AT_1BPM / float(bpm)
    return 0.0


def _latest_at(sectors: List[Sector], position: float) -> Sector:
    for sector in reversed(sectors):
        if sector.position == position:
            return sector
    raise AssertionError("no sector at position")  # pragma: no cover


def _drop_superseded(sectors: List[Sector], position: float) -> None:
    # A freeze is ended by exactly one exclusive sector.
    while sectors and sectors[-1].position == position and not sectors[-1].inclusive:
        sectors.pop()


def build_sectors(events: Iterable[TempoEvent], signatures: SignatureTable, base_bpm: float) -> List[Sector]:
    sectors: List[Sector] = [initial_sector(base_bpm)]

    ordered_events = sorted(events, key=lambda event: float(event.position))
    for event in ordered_events:
        position = float(event.position)
        active = find_active_sector(sectors, position)
        inside_freeze = active.bpm == 0.0 and active.position == position and active is not sectors[0]

        if inside_freeze:
            anchor = _latest_at(sectors, position)
            elapsed = float(anchor.time)
            _drop_superseded(sectors, position)
            if isinstance(event, TempoChange):
                sectors.append(Sector(position=position, time=elapsed, bpm=float(event.bpm), inclusive=False))
            elif isinstance(event, Stop):
                resume_time = elapsed + _stop_seconds(event.beats, anchor.bpm)
                sectors.append(Sector(position=position, time=resume_time, bpm=float(anchor.bpm), inclusive=False))
            else:
                raise TypeError(f"Not a tempo event: {type(event).__name__}")
            logger.debug("Stacked %s on freeze at position %.6f", type(event).__name__, position)
            continue

        elapsed = _elapsed_at(active, position, signatures)
        if isinstance(event, TempoChange):
            sectors.append(Sector(position=position, time=elapsed, bpm=float(event.bpm), inclusive=True))
        elif isinstance(event, Stop):
            sectors.append(Sector(position=position, time=elapsed, bpm=0.0, inclusive=True))
            resume_time = elapsed + _stop_seconds(event.beats, active.bpm)
            sectors.append(Sector(position=position, time=resume_time, bpm=float(active.bpm), inclusive=False))
        else:
            raise TypeError(f"Not a tempo event: {type(event).__name__}")

    logger.debug("Built %d sectors from %d tempo events", len(sectors), len(ordered_events))
    return sectors
