"""
🎨 Number formatting rules for table cells
Driven by central configuration from config.py
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any, Protocol

from config import CONFIG
from summary_tables.errors import is_missing


class FormatRule(Protocol):
    def format(self, value: Any) -> str | None:
        """Return display text, or None for a missing value."""


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


@dataclass(frozen=True)
class IntegerFormat:
    """Round to a whole number; optional thousands separator."""

    use_grouping: bool = False
    sep_mark: str = ","

    def format(self, value: Any) -> str | None:
        if is_missing(value):
            return None
        if not _is_number(value):
            return str(value)
        text = f"{float(value):,.0f}" if self.use_grouping else f"{float(value):.0f}"
        return text.replace(",", self.sep_mark) if self.use_grouping else text


@dataclass(frozen=True)
class FixedFormat:
    """Fixed number of decimals; ``None`` uses ``table.continuous_decimals``."""

    decimals: int | None = None

    def format(self, value: Any) -> str | None:
        if is_missing(value):
            return None
        if not _is_number(value):
            return str(value)
        decimals = self.decimals
        if decimals is None:
            decimals = CONFIG.get("table.continuous_decimals", 1)
        return f"{float(value):.{decimals}f}"


@dataclass(frozen=True)
class PercentFormat:
    """Fraction shown as a percentage: ``0.256`` -> ``"25.6%"``."""

    decimals: int | None = None
    symbol: str = "%"

    def format(self, value: Any) -> str | None:
        if is_missing(value):
            return None
        if not _is_number(value):
            return str(value)
        decimals = self.decimals
        if decimals is None:
            decimals = CONFIG.get("table.pct_decimals", 1)
        return f"{float(value) * 100:.{decimals}f}{self.symbol}"


def format_plain(value: Any) -> str | None:
    """
    Default text for a cell without a format rule.
    Whole numbers lose their trailing ``.0``; other floats use ``g`` notation.
    """
    if is_missing(value):
        return None
    if isinstance(value, bool) or not isinstance(value, Real):
        return str(value)
    if isinstance(value, Integral):
        return str(int(value))
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return format(value, "g")


def format_cell(value: Any, rule: FormatRule | None, missing_text: str) -> str:
    """Apply ``rule`` (or plain formatting) and substitute the missing-value text."""
    text = rule.format(value) if rule is not None else format_plain(value)
    return missing_text if text is None else text
