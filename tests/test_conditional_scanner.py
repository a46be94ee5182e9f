import random

import pytest

from bms_errors import MalformedNumericLiteralError, UnmatchedConditionalError
from conditional_scanner import ConditionalScanner


def _active_lines(scanner, lines):
    active = []
    for line in lines:
        if scanner.feed(line):
            continue
        if scanner.is_active():
            active.append(line)
    return active


BRANCHES = ["#RANDOM 2", "#IF 1", "one", "#ELSE", "two", "#ENDIF", "after"]


@pytest.mark.parametrize("draw, expected", [(1, ["one", "after"]), (2, ["two", "after"])])
def test_exactly_one_branch_is_active(draw, expected):
    scanner = ConditionalScanner(lambda upper: draw)
    assert _active_lines(scanner, BRANCHES) == expected
    assert scanner.last_draw() == draw


def test_seeded_generator_is_reproducible():
    first = _active_lines(ConditionalScanner(random.Random(42)), BRANCHES)
    second = _active_lines(ConditionalScanner(seed=42), BRANCHES)
    assert first == second


def test_if_without_random_is_skipped():
    scanner = ConditionalScanner(lambda upper: 1)
    assert _active_lines(scanner, ["#IF 1", "inside", "#ENDIF", "outside"]) == ["outside"]


def test_nested_block_inside_skipped_branch_stays_skipped():
    lines = [
        "#RANDOM 2",
        "#IF 2",
        "#RANDOM 3",
        "#IF 1",
        "nested",
        "#ENDIF",
        "#ENDIF",
        "done",
    ]
    scanner = ConditionalScanner(lambda upper: 1)
    assert _active_lines(scanner, lines) == ["done"]


def test_nested_else_inside_active_branch():
    lines = [
        "#RANDOM 2",
        "#IF 1",
        "#IF 2",
        "no",
        "#ELSE",
        "yes",
        "#ENDIF",
        "#ENDIF",
    ]
    scanner = ConditionalScanner(lambda upper: 1)
    assert _active_lines(scanner, lines) == ["yes"]
    assert scanner.depth() == 0


def test_directives_are_case_insensitive():
    scanner = ConditionalScanner(lambda upper: 1)
    assert _active_lines(scanner, ["#random 2", "#if 1", "x", "#else", "y", "#endif"]) == ["x"]


@pytest.mark.parametrize("line", ["#ELSE", "#ENDIF"])
def test_unmatched_conditionals_raise(line):
    with pytest.raises(UnmatchedConditionalError):
        ConditionalScanner(lambda upper: 1).feed(line)


def test_random_bound_must_be_positive():
    with pytest.raises(MalformedNumericLiteralError):
        ConditionalScanner(lambda upper: 1).feed("#RANDOM 0")


def test_malformed_if_still_opens_a_skipped_block():
    scanner = ConditionalScanner(lambda upper: 1)
    scanner.feed("#RANDOM 2")
    with pytest.raises(MalformedNumericLiteralError):
        scanner.feed("#IF x")
    assert scanner.depth() == 1
    assert not scanner.is_active()
    assert _active_lines(scanner, ["#00111:01", "#ELSE", "#00211:01", "#ENDIF", "#00311:01"]) == [
        "#00211:01",
        "#00311:01",
    ]
    assert scanner.depth() == 0
