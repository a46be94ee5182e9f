# -*- coding: utf-8 -*-
########################
# conditional_scanner.py
########################
# Purpose:
# - Track #RANDOM / #IF / #ELSE / #ENDIF state and decide which source lines are active.
#
# Design notes:
# - The random source is injected (random.Random or a draw callable). Never use module-level random.
# - A matching draw processes the #IF branch; #ELSE processes the other one.
# - #IF before any #RANDOM has no draw to compare against, so the branch is skipped.
# - A malformed #IF opens a block whose #IF branch is skipped, then the error propagates.
# - Blocks nested inside a skipped block stay skipped, and #RANDOM is not drawn while skipping.
#
########################
# Interfaces:
# Public classes:
# - class ConditionalScanner
#   - __init__(rng: Optional[random.Random | Callable[[int], int]] = None, *, seed: Optional[int] = None)
#   - feed(line: str) -> bool   # True when the line was a conditional directive
#   - is_active() -> bool
#   - last_draw() -> Optional[int]
#   - depth() -> int
#   - finish() -> None
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
import random
import re
from typing import Callable, List, Optional, Union

from bms_errors import MalformedNumericLiteralError, UnmatchedConditionalError
from bms_keys import parse_int


logger = logging.getLogger(__name__)

DrawSource = Union[random.Random, Callable[[int], int]]

_RANDOM_RE = re.compile(r"^\s*#RANDOM(?:\s+(\S+)|(\d+))\s*$", re.IGNORECASE)
_IF_RE = re.compile(r"^\s*#IF(?:\s+(\S+)|(\d+))\s*$", re.IGNORECASE)
_ELSE_RE = re.compile(r"^\s*#ELSE\s*$", re.IGNORECASE)
_ENDIF_RE = re.compile(r"^\s*#(?:END\s?IF|IFEND)\s*$", re.IGNORECASE)
_ENDRANDOM_RE = re.compile(r"^\s*#ENDRANDOM\s*$", re.IGNORECASE)


@dataclass
class _Frame:
    skip: bool
    parent_skip: bool
    own_skip: bool


class ConditionalScanner:
    def __init__(self, rng: Optional[DrawSource] = None, *, seed: Optional[int] = None) -> None:
        if rng is None:
            rng = random.Random(seed)
        if isinstance(rng, random.Random):
            generator = rng
            self._draw: Callable[[int], int] = lambda upper: generator.randint(1, upper)
        else:
            self._draw = rng
        self._stack: List[_Frame] = [_Frame(skip=False, parent_skip=False, own_skip=False)]
        self._last_draw: Optional[int] = None

    def is_active(self) -> bool:
        return not self._stack[-1].skip

    def last_draw(self) -> Optional[int]:
        return self._last_draw

    def depth(self) -> int:
        return len(self._stack) - 1

    def feed(self, line: str) -> bool:
        match = _RANDOM_RE.match(line)
        if match:
            if self.is_active():
                self._random(parse_int(match.group(1) or match.group(2), what="#RANDOM"))
            return True

        match = _IF_RE.match(line)
        if match:
            try:
                expected = parse_int(match.group(1) or match.group(2), what="#IF")
            except MalformedNumericLiteralError:
                # A malformed #IF still opens a block; its branch is never taken.
                self._if(None)
                raise
            self._if(expected)
            return True

        if _ELSE_RE.match(line):
            self._else()
            return True

        if _ENDIF_RE.match(line):
            self._endif()
            return True

        if _ENDRANDOM_RE.match(line):
            return True

        return False

    def _random(self, upper: int) -> None:
        if upper < 1:
            raise MalformedNumericLiteralError(f"#RANDOM bound must be at least 1, got {upper}")
        drawn = int(self._draw(upper))
        if drawn < 1 or drawn > upper:
            raise ValueError(f"Random source returned {drawn}, outside 1..{upper}")
        self._last_draw = drawn
        logger.debug("#RANDOM %d drew %d", upper, drawn)

    def _if(self, expected: Optional[int]) -> None:
        parent_skip = self._stack[-1].skip
        own_skip = expected is None or self._last_draw is None or self._last_draw != expected
        self._stack.append(_Frame(skip=parent_skip or own_skip, parent_skip=parent_skip, own_skip=own_skip))

    def _else(self) -> None:
        if len(self._stack) <= 1:
            raise UnmatchedConditionalError("#ELSE without matching #IF")
        frame = self._stack[-1]
        frame.own_skip = not frame.own_skip
        frame.skip = frame.parent_skip or frame.own_skip

    def _endif(self) -> None:
        if len(self._stack) <= 1:
            raise UnmatchedConditionalError("#ENDIF without matching #IF")
        self._stack.pop()

    def finish(self) -> None:
        if len(self._stack) > 1:
            logger.warning("%d #IF block(s) left open at end of chart", len(self._stack) - 1)


def _run_unit_tests() -> None:
    scanner = ConditionalScanner(lambda upper: 2)
    active_lines = []
    for line in ["#RANDOM 2", "#IF 1", "A", "#ELSE", "B", "#ENDIF", "C"]:
        if scanner.feed(line):
            continue
        if scanner.is_active():
            active_lines.append(line)
    assert active_lines == ["B", "C"]

    try:
        ConditionalScanner(seed=1).feed("#ENDIF")
    except UnmatchedConditionalError:
        pass
    else:
        raise AssertionError("Expected UnmatchedConditionalError for lone #ENDIF")


if __name__ == "__main__":
    _run_unit_tests()
    print("conditional_scanner.py: ok")
