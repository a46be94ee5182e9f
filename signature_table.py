# -*- coding: utf-8 -*-
########################
# signature_table.py
########################
# Purpose:
# - Per-measure length multipliers (#mmm02 lines) and the signature weighted
#   distance between two chart positions.
#
# Design notes:
# - 1.0 means the nominal four-beat measure. Values must be > 0.
# - Measures outside 0..max_measures-1 raise IndexOutOfRangeError on set and get.
# - Positions past the last measure are weighted with the default 1.0 so that
#   tail arithmetic on the final measure stays defined.
#
########################
# Interfaces:
# Public classes:
# - class SignatureTable
#   - __init__(max_measures: int = 1000)
#   - get(measure: int) -> float
#   - set(measure: int, value: float) -> None
#   - weighted_delta(start: float, end: float) -> float
#   - resolve(position: float) -> float
#   - unresolve(resolved: float) -> float
#   - overrides() -> dict[int, float]
#
########################

from __future__ import annotations

import math
from typing import Dict

from bms_errors import IndexOutOfRangeError, MalformedNumericLiteralError


DEFAULT_MAX_MEASURES = 1000


class SignatureTable:
    def __init__(self, max_measures: int = DEFAULT_MAX_MEASURES) -> None:
        if int(max_measures) <= 0:
            raise ValueError(f"max_measures must be positive, got {max_measures!r}")
        self._max_measures = int(max_measures)
        self._overrides: Dict[int, float] = {}

    @property
    def max_measures(self) -> int:
        return self._max_measures

    def _check_measure(self, measure: int) -> int:
        index = int(measure)
        if index < 0 or index >= self._max_measures:
            raise IndexOutOfRangeError(f"Measure {index} outside 0..{self._max_measures - 1}")
        return index

    def get(self, measure: int) -> float:
        return float(self._overrides.get(self._check_measure(measure), 1.0))

    def set(self, measure: int, value: float) -> None:
        index = self._check_measure(measure)
        length = float(value)
        if not (length > 0.0) or math.isinf(length):
            raise MalformedNumericLiteralError(f"Measure length must be positive, got {value!r}")
        if length == 1.0:
            self._overrides.pop(index, None)
        else:
            self._overrides[index] = length

    def overrides(self) -> Dict[int, float]:
        return dict(self._overrides)

    def _length(self, measure: int) -> float:
        if measure >= self._max_measures:
            return 1.0
        return self.get(measure)

    def weighted_delta(self, start: float, end: float) -> float:
        """Signature weighted length from ``start`` to ``end``.

        Whole measures contribute their multiplier, partial measures the
        covered share of it. The result is negative when ``start > end``.
        """
        low = float(start)
        high = float(end)
        negative = low > high
        if negative:
            low, high = high, low
        if low < 0.0:
            raise IndexOutOfRangeError(f"Negative chart position: {low!r}")

        low_measure = int(low)
        high_measure = int(high)
        low_offset = low - low_measure
        high_offset = high - high_measure

        if low_measure == high_measure:
            result = (high_offset - low_offset) * self._length(low_measure)
        else:
            result = (1.0 - low_offset) * self._length(low_measure)
            result += high_offset * self._length(high_measure)
            for measure in range(low_measure + 1, high_measure):
                result += self._length(measure)

        return -result if negative else result

    def resolve(self, position: float) -> float:
        return self.weighted_delta(0.0, position)

    def unresolve(self, resolved: float) -> float:
        """Inverse of resolve(): map a weighted length back to a chart position."""
        remaining = float(resolved)
        if remaining <= 0.0:
            return remaining
        measure = 0
        while True:
            length = self._length(measure)
            if remaining < length or measure >= self._max_measures:
                return measure + remaining / length
            remaining -= length
            measure += 1


def _run_unit_tests() -> None:
    table = SignatureTable()
    assert table.get(3) == 1.0
    table.set(1, 0.75)
    assert abs(table.resolve(2.0) - 1.75) < 1e-9
    assert abs(table.weighted_delta(1.5, 0.5) - (-(0.5 + 0.375))) < 1e-9
    assert abs(table.unresolve(table.resolve(2.25)) - 2.25) < 1e-9

    try:
        table.set(1000, 2.0)
    except IndexOutOfRangeError:
        pass
    else:
        raise AssertionError("Expected IndexOutOfRangeError for measure 1000")


if __name__ == "__main__":
    _run_unit_tests()
    print("signature_table.py: ok")
