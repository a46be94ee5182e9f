# -*- coding: utf-8 -*-
########################
# bms_errors.py
########################
# Purpose:
# - Error taxonomy shared by every stage of chart construction.
#
# Design notes:
# - All fatal failures derive from BmsError so callers can catch one type.
# - Numeric and index failures also derive from the matching builtin
#   (ValueError, IndexError) so generic handlers keep working.
# - Line numbers are 1-based and optional; they are attached by bms_store.py.
#
########################
# Interfaces:
# Public exceptions:
# - class BmsError(Exception)
# - class ChartFileNotFoundError(BmsError)
# - class MalformedNumericLiteralError(BmsError, ValueError)
# - class UnmatchedConditionalError(BmsError)
# - class IndexOutOfRangeError(BmsError, IndexError)
#
########################

from __future__ import annotations

from typing import Optional


class BmsError(Exception):
    """Base error for chart parsing and timeline resolution."""

    def __init__(self, message: str, *, line_number: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = str(message)
        self.line_number = line_number

    def __str__(self) -> str:
        if self.line_number is None:
            return self.message
        return f"line {self.line_number}: {self.message}"

    def with_line_number(self, line_number: int) -> "BmsError":
        if self.line_number is None:
            self.line_number = int(line_number)
        return self


class ChartFileNotFoundError(BmsError):
    """Raised when the chart file is missing or cannot be read."""


class MalformedNumericLiteralError(BmsError, ValueError):
    """Raised when a directive value or channel cell does not parse as a number."""


class UnmatchedConditionalError(BmsError):
    """Raised on #ELSE or #ENDIF without an open #IF."""


class IndexOutOfRangeError(BmsError, IndexError):
    """Raised when a measure or key index falls outside its table."""
