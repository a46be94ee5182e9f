import pytest

from bms_errors import IndexOutOfRangeError, MalformedNumericLiteralError
from signature_table import SignatureTable


def test_default_measure_length_is_one():
    table = SignatureTable()
    assert table.get(0) == 1.0
    assert table.get(999) == 1.0
    assert table.resolve(3.25) == pytest.approx(3.25)


def test_consecutive_measures_differ_by_their_multiplier():
    table = SignatureTable()
    table.set(2, 0.75)
    table.set(3, 1.5)
    for measure in range(6):
        assert table.resolve(measure + 1) - table.resolve(measure) == pytest.approx(table.get(measure))


def test_weighted_delta_spans_partial_measures_and_keeps_sign():
    table = SignatureTable()
    table.set(1, 0.5)
    forward = table.weighted_delta(0.5, 2.25)
    assert forward == pytest.approx(0.5 + 0.5 + 0.25)
    assert table.weighted_delta(2.25, 0.5) == pytest.approx(-forward)
    assert table.weighted_delta(1.2, 1.6) == pytest.approx(0.4 * 0.5)


def test_unresolve_inverts_resolve():
    table = SignatureTable()
    table.set(0, 0.75)
    table.set(4, 2.0)
    for position in (0.0, 0.3, 1.0, 3.9, 4.5, 7.125):
        assert table.unresolve(table.resolve(position)) == pytest.approx(position)


def test_out_of_range_measures_raise():
    table = SignatureTable(max_measures=10)
    with pytest.raises(IndexOutOfRangeError):
        table.set(10, 0.5)
    with pytest.raises(IndexOutOfRangeError):
        table.get(-1)


def test_non_positive_length_is_malformed():
    table = SignatureTable()
    with pytest.raises(MalformedNumericLiteralError):
        table.set(1, 0.0)


def test_setting_back_to_one_clears_override():
    table = SignatureTable()
    table.set(5, 0.25)
    table.set(5, 1.0)
    assert table.overrides() == {}
