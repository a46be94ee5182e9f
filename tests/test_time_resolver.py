import dataclasses

import pytest

from bms_models import BackgroundAudio, PlayableNote, Sector, Stop, TempoChange
from signature_table import SignatureTable
from tempo_timeline import build_sectors
from time_resolver import TimeResolver, find_active_sector


def _timeline():
    signatures = SignatureTable()
    signatures.set(1, 0.75)
    signatures.set(3, 1.5)
    events = [
        TempoChange(position=1.0, bpm=180.0),
        Stop(position=2.5, beats=0.5),
        TempoChange(position=4.25, bpm=90.0),
    ]
    sectors = build_sectors(events, signatures, 150.0)
    return signatures, TimeResolver(sectors, signatures)


@pytest.mark.parametrize("position", [0.0, 0.3, 1.0, 1.6, 2.2, 2.75, 3.1, 4.25, 5.5, 9.0])
def test_time_to_fraction_inverts_position_to_time(position):
    signatures, resolver = _timeline()
    time_seconds = resolver.position_to_time(position)
    assert resolver.time_to_fraction(time_seconds) == pytest.approx(signatures.resolve(position))
    assert resolver.time_to_position(time_seconds) == pytest.approx(position)


def test_default_signatures_round_trip_is_identity():
    signatures = SignatureTable()
    resolver = TimeResolver(build_sectors([TempoChange(position=2.0, bpm=200.0)], signatures, 130.0), signatures)
    for position in (0.25, 1.0, 2.0, 2.5, 7.75):
        assert resolver.time_to_fraction(resolver.position_to_time(position)) == pytest.approx(position)


def test_time_inside_stop_maps_to_stop_position():
    signatures = SignatureTable()
    resolver = TimeResolver(build_sectors([Stop(position=0.5, beats=1.0)], signatures, 120.0), signatures)
    assert resolver.time_to_fraction(1.0) == pytest.approx(0.5)
    assert resolver.time_to_fraction(2.0) == pytest.approx(0.5)
    assert resolver.time_to_fraction(3.0) == pytest.approx(0.5)
    assert resolver.time_to_fraction(3.5) == pytest.approx(0.75)


def test_resolve_signatures_matches_table():
    signatures, resolver = _timeline()
    assert resolver.resolve_signatures(2.0) == pytest.approx(1.75)


def test_exclusive_sector_is_skipped_on_exact_tie():
    sectors = [
        Sector(position=0.0, time=0.0, bpm=120.0, inclusive=True),
        Sector(position=1.0, time=2.0, bpm=0.0, inclusive=True),
        Sector(position=1.0, time=4.0, bpm=120.0, inclusive=False),
    ]
    assert find_active_sector(sectors, 1.0) is sectors[1]
    assert find_active_sector(sectors, 1.01) is sectors[2]
    assert find_active_sector(sectors, 0.99) is sectors[0]


def test_stamp_fills_time_without_mutating_input():
    signatures = SignatureTable()
    resolver = TimeResolver(build_sectors([], signatures, 120.0), signatures)
    objects = [BackgroundAudio(position=1.0, key=1), PlayableNote(position=0.5, key=2, player=1, line=1)]
    stamped = resolver.stamp(objects)
    assert [obj.time for obj in stamped] == [pytest.approx(2.0), pytest.approx(1.0)]
    assert all(obj.time is None for obj in objects)
    assert dataclasses.replace(stamped[0], time=None) == objects[0]


def test_empty_sector_sequence_is_rejected():
    with pytest.raises(ValueError):
        TimeResolver([], SignatureTable())


def test_time_inside_stacked_stops_stays_on_stop_position():
    signatures = SignatureTable()
    events = [Stop(position=0.5, beats=1.0), Stop(position=0.5, beats=0.5)]
    resolver = TimeResolver(build_sectors(events, signatures, 120.0), signatures)
    for time_seconds in (1.0, 2.5, 3.0, 3.5, 4.0):
        assert resolver.time_to_fraction(time_seconds) == pytest.approx(0.5)
    assert resolver.time_to_fraction(4.5) == pytest.approx(0.75)
    assert resolver.time_to_position(resolver.position_to_time(0.75)) == pytest.approx(0.75)


def test_time_queries_are_monotonic_across_stacked_events():
    signatures = SignatureTable()
    events = [Stop(position=0.5, beats=1.0), TempoChange(position=0.5, bpm=240.0), Stop(position=0.5, beats=0.5)]
    resolver = TimeResolver(build_sectors(events, signatures, 120.0), signatures)
    fractions = [resolver.time_to_fraction(step * 0.25) for step in range(0, 25)]
    assert fractions == sorted(fractions)
    assert resolver.time_to_fraction(3.5) == pytest.approx(0.5)
