# -*- coding: utf-8 -*-
########################
# time_resolver.py
########################
# Purpose:
# - Convert chart positions to elapsed seconds and back, given a finished sector sequence.
# - Stamp decoded timeline objects with their resolved time.
#
# Design notes:
# - Sector lookup scans from the most recently constructed sector backward. Construction order
#   is the tie-break for sectors sharing a position, which is what keeps objects on a stop start
#   on the freeze sector. Do not replace this with a position-only sort or bisect.
# - 240 = 60 seconds per minute * 4 beats per nominal measure.
# - Pure and read-only after construction; safe for concurrent readers.
#
########################
# Interfaces:
# Constants:
# - SECONDS_PER_MEASURE_AT_1BPM = 240.0
#
# Public functions:
# - find_active_sector(sectors, position) -> Sector
#
# Public classes:
# - class TimeResolver
#   - __init__(sectors: Sequence[Sector], signatures: SignatureTable)
#   - resolve_signatures(position: float) -> float
#   - position_to_time(position: float) -> float
#   - time_to_fraction(time_seconds: float) -> float
#   - time_to_position(time_seconds: float) -> float
#   - stamp(objects: Iterable[TimelineObject]) -> list[TimelineObject]
#
# Inputs:
# - Sector sequence produced by tempo_timeline.build_sectors.
#
# Outputs:
# - Seconds for positions, resolved fractions or positions for seconds.
#
########################

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, Iterable, List, Sequence

from signature_table import SignatureTable

if TYPE_CHECKING:
    from bms_models import Sector


SECONDS_PER_MEASURE_AT_1BPM = 240.0


def find_active_sector(sectors: Sequence["Sector"], position: float) -> "Sector":
    """Return the latest-constructed sector that governs ``position``.

    A sector governs a position strictly after its own, or exactly at it when
    the sector is inclusive. Sector 0 governs everything, so a match always
    exists for non-negative positions.
    """
    target = float(position)
    for sector in reversed(sectors):
        if sector.position < target or (sector.inclusive and sector.position == target):
            return sector
    return sectors[0]


class TimeResolver:
    def __init__(self, sectors: Sequence["Sector"], signatures: SignatureTable) -> None:
        if not sectors:
            raise ValueError("TimeResolver needs at least the initial sector")
        self._sectors = tuple(sectors)
        self._signatures = signatures

    def resolve_signatures(self, position: float) -> float:
        return self._signatures.resolve(position)

    def position_to_time(self, position: float) -> float:
        sector = find_active_sector(self._sectors, position)
        if sector.bpm > 0.0:
            delta = self._signatures.weighted_delta(sector.position, position)
            return float(sector.time) + delta * SECONDS_PER_MEASURE_AT_1BPM / float(sector.bpm)
        return float(sector.time)

    def time_to_fraction(self, time_seconds: float) -> float:
        target = float(time_seconds)
        active = self._sectors[0]
        for sector in reversed(self._sectors):
            if sector.time < target or (sector.inclusive and sector.time == target):
                active = sector
                break
        base = self._signatures.resolve(active.position)
        return base + (target - float(active.time)) * float(active.bpm) / SECONDS_PER_MEASURE_AT_1BPM

    def time_to_position(self, time_seconds: float) -> float:
        return self._signatures.unresolve(self.time_to_fraction(time_seconds))

    def stamp(self, objects: Iterable[Any]) -> List[Any]:
        return [dataclasses.replace(obj, time=self.position_to_time(obj.position)) for obj in objects]


def _run_unit_tests() -> None:
    from bms_models import Sector

    signatures = SignatureTable()
    sectors = [
        Sector(position=0.0, time=0.0, bpm=130.0, inclusive=True),
        Sector(position=1.0, time=240.0 / 130.0, bpm=260.0, inclusive=True),
    ]
    resolver = TimeResolver(sectors, signatures)
    assert abs(resolver.position_to_time(0.5) - 0.5 * 240.0 / 130.0) < 1e-9
    assert abs(resolver.position_to_time(1.5) - (240.0 / 130.0 + 0.5 * 240.0 / 260.0)) < 1e-9
    assert abs(resolver.time_to_fraction(resolver.position_to_time(1.5)) - 1.5) < 1e-9


if __name__ == "__main__":
    _run_unit_tests()
    print("time_resolver.py: ok")
