# -*- coding: utf-8 -*-
########################
# bms_keys.py
########################
# Purpose:
# - Numeric helpers for two-character base-36 keys and hex cells.
# - Bounds-checked key table used for #WAVxx, #BMPxx, #BPMxx and #STOPxx.
#
# Design notes:
# - Keys are always exactly two characters. "00" is the empty key.
# - Parsing failures raise MalformedNumericLiteralError, never return a sentinel.
#
########################
# Interfaces:
# Constants:
# - KEY_SPACE = 1296
# - MAX_KEY = 1295
#
# Public functions:
# - parse_base36(text: str) -> int
# - parse_hex(text: str) -> int
# - format_base36(value: int) -> str
# - parse_float(text: str, *, what: str) -> float
# - parse_int(text: str, *, what: str) -> int
#
# Public classes:
# - class KeyTable(Generic[T])
#   - get(key: int) -> Optional[T]
#   - set(key: int, value: T) -> None
#   - __contains__(key) -> bool
#   - items() -> list[tuple[int, T]]
#
########################

from __future__ import annotations

from typing import Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from bms_errors import IndexOutOfRangeError, MalformedNumericLiteralError


KEY_SPACE = 36 * 36
MAX_KEY = KEY_SPACE - 1

_BASE36_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

T = TypeVar("T")


def parse_base36(text: str) -> int:
    key_text = str(text or "").strip()
    if len(key_text) != 2 or not key_text.isalnum():
        raise MalformedNumericLiteralError(f"Expected a two-character base-36 key, got {text!r}")
    try:
        return int(key_text, 36)
    except ValueError as exc:
        raise MalformedNumericLiteralError(f"Invalid base-36 key: {text!r}") from exc


def parse_hex(text: str) -> int:
    key_text = str(text or "").strip()
    if len(key_text) != 2 or not key_text.isalnum():
        raise MalformedNumericLiteralError(f"Expected a two-character hex value, got {text!r}")
    try:
        return int(key_text, 16)
    except ValueError as exc:
        raise MalformedNumericLiteralError(f"Invalid hex value: {text!r}") from exc


def format_base36(value: int) -> str:
    number = int(value)
    if number < 0 or number > MAX_KEY:
        raise IndexOutOfRangeError(f"Key {number} outside 0..{MAX_KEY}")
    return _BASE36_DIGITS[number // 36] + _BASE36_DIGITS[number % 36]


def parse_float(text: str, *, what: str) -> float:
    raw_text = str(text or "").strip()
    try:
        value = float(raw_text)
    except ValueError as exc:
        raise MalformedNumericLiteralError(f"Invalid {what} value: {raw_text!r}") from exc
    if value != value or value in (float("inf"), float("-inf")):
        raise MalformedNumericLiteralError(f"Invalid {what} value: {raw_text!r}")
    return value


def parse_int(text: str, *, what: str) -> int:
    raw_text = str(text or "").strip()
    try:
        return int(raw_text)
    except ValueError as exc:
        raise MalformedNumericLiteralError(f"Invalid {what} value: {raw_text!r}") from exc


class KeyTable(Generic[T]):
    """Sparse table over the 1296 two-character keys."""

    def __init__(self, name: str) -> None:
        self._name = str(name)
        self._slots: Dict[int, T] = {}

    def _check(self, key: int) -> int:
        index = int(key)
        if index < 0 or index > MAX_KEY:
            raise IndexOutOfRangeError(f"{self._name} key {index} outside 0..{MAX_KEY}")
        return index

    def get(self, key: int) -> Optional[T]:
        return self._slots.get(self._check(key))

    def set(self, key: int, value: T) -> None:
        self._slots[self._check(key)] = value

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, int):
            return False
        return 0 <= key <= MAX_KEY and key in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._slots))

    def items(self) -> List[Tuple[int, T]]:
        return [(key, self._slots[key]) for key in sorted(self._slots)]


def _run_unit_tests() -> None:
    assert parse_base36("01") == 1
    assert parse_base36("zz") == MAX_KEY
    assert parse_hex("FF") == 255
    assert format_base36(36) == "10"

    try:
        parse_base36("0")
    except MalformedNumericLiteralError:
        pass
    else:
        raise AssertionError("Expected MalformedNumericLiteralError for one-character key")

    table: KeyTable[str] = KeyTable("WAV")
    table.set(parse_base36("0A"), "kick.wav")
    assert table.get(10) == "kick.wav"
    assert 10 in table
    try:
        table.set(KEY_SPACE, "x")
    except IndexOutOfRangeError:
        pass
    else:
        raise AssertionError("Expected IndexOutOfRangeError for key 1296")


if __name__ == "__main__":
    _run_unit_tests()
    print("bms_keys.py: ok")
