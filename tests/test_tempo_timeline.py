import pytest

from bms_models import Sector, Stop, TempoChange
from signature_table import SignatureTable
from tempo_timeline import build_sectors
from time_resolver import TimeResolver


def _resolver(events, base_bpm=120.0, signatures=None):
    table = signatures if signatures is not None else SignatureTable()
    sectors = build_sectors(events, table, base_bpm)
    return sectors, TimeResolver(sectors, table)


def test_without_events_only_the_initial_sector_exists():
    sectors, _ = _resolver([], base_bpm=150.0)
    assert sectors == [Sector(position=0.0, time=0.0, bpm=150.0, inclusive=True)]


def test_single_tempo_change_adds_one_inclusive_sector():
    sectors, resolver = _resolver([TempoChange(position=1.0, bpm=260.0)], base_bpm=130.0)
    assert len(sectors) == 2
    assert sectors[1] == Sector(position=1.0, time=pytest.approx(240.0 / 130.0), bpm=260.0, inclusive=True)
    assert resolver.position_to_time(0.5) == pytest.approx(0.5 * 240.0 / 130.0)
    assert resolver.position_to_time(1.5) == pytest.approx(240.0 / 130.0 + 0.5 * 240.0 / 260.0)


def test_events_are_applied_in_position_order():
    events = [TempoChange(position=2.0, bpm=60.0), TempoChange(position=1.0, bpm=240.0)]
    sectors, resolver = _resolver(events)
    assert [sector.position for sector in sectors] == [0.0, 1.0, 2.0]
    assert resolver.position_to_time(2.0) == pytest.approx(2.0 + 1.0)
    assert resolver.position_to_time(3.0) == pytest.approx(3.0 + 4.0)


def test_equal_positions_keep_source_order():
    events = [TempoChange(position=1.0, bpm=100.0), TempoChange(position=1.0, bpm=200.0)]
    _, resolver = _resolver(events)
    assert resolver.position_to_time(1.5) == pytest.approx(2.0 + 0.5 * 240.0 / 200.0)


def test_stop_freezes_objects_on_its_position():
    sectors, resolver = _resolver([Stop(position=0.5, beats=1.0)])
    freeze, resume = sectors[1], sectors[2]
    assert freeze == Sector(position=0.5, time=1.0, bpm=0.0, inclusive=True)
    assert resume == Sector(position=0.5, time=3.0, bpm=120.0, inclusive=False)
    assert resolver.position_to_time(0.5) == pytest.approx(1.0)
    assert resolver.position_to_time(0.75) == pytest.approx(3.5)


def test_stops_on_the_same_position_accumulate():
    sectors, resolver = _resolver([Stop(position=0.5, beats=1.0), Stop(position=0.5, beats=0.5)])
    assert resolver.position_to_time(0.5) == pytest.approx(1.0)
    assert resolver.position_to_time(0.75) == pytest.approx(1.0 + 2.0 + 1.0 + 0.5)
    assert sectors[-1].inclusive is False
    assert sectors[1:] == [
        Sector(position=0.5, time=1.0, bpm=0.0, inclusive=True),
        Sector(position=0.5, time=4.0, bpm=120.0, inclusive=False),
    ]


def test_tempo_change_before_stop_sets_stop_length():
    _, resolver = _resolver([TempoChange(position=0.5, bpm=240.0), Stop(position=0.5, beats=1.0)])
    assert resolver.position_to_time(0.5) == pytest.approx(1.0)
    assert resolver.position_to_time(0.75) == pytest.approx(2.0 + 0.25)


def test_tempo_change_after_stop_keeps_objects_frozen():
    _, resolver = _resolver([Stop(position=0.5, beats=1.0), TempoChange(position=0.5, bpm=240.0)])
    assert resolver.position_to_time(0.5) == pytest.approx(1.0)
    assert resolver.position_to_time(0.75) == pytest.approx(3.0 + 0.25)


def test_stop_tempo_stop_on_one_position_leaves_one_resume():
    events = [Stop(position=0.5, beats=1.0), TempoChange(position=0.5, bpm=240.0), Stop(position=0.5, beats=1.0)]
    sectors, resolver = _resolver(events)
    assert sectors[-1] == Sector(position=0.5, time=4.0, bpm=240.0, inclusive=False)
    assert [sector.inclusive for sector in sectors] == [True, True, False]
    assert resolver.position_to_time(0.75) == pytest.approx(4.25)


def test_signature_weights_sector_times():
    signatures = SignatureTable()
    signatures.set(0, 0.5)
    sectors, _ = _resolver([TempoChange(position=1.0, bpm=60.0)], signatures=signatures)
    assert sectors[1].time == pytest.approx(1.0)


def test_stop_in_zero_tempo_does_not_advance():
    _, resolver = _resolver([TempoChange(position=1.0, bpm=0.0), Stop(position=1.5, beats=1.0)])
    assert resolver.position_to_time(1.0) == pytest.approx(2.0)
    assert resolver.position_to_time(3.0) == pytest.approx(2.0)
