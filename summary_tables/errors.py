"""
Error kinds raised by the summary table engine, plus the sentinel used for
statistics that cannot be computed.

Structural errors are raised synchronously and never recovered internally.
Numeric edge cases are data: they are represented by ``UNDEFINED`` and
rendered as the table's missing-value text.
"""

from __future__ import annotations

import math
from typing import Any

import pandas as pd


class SummaryTableError(Exception):
    """Base class for all structural errors of the engine."""


class UnknownVariableType(SummaryTableError):
    """A variable carries neither categorical nor continuous type metadata."""

    def __init__(self, name: str, declared: Any = None):
        self.name = name
        self.declared = declared
        detail = f" (declared type: {declared!r})" if declared is not None else ""
        super().__init__(f"Variable '{name}' has no categorical/continuous type{detail}")


class UnknownReference(SummaryTableError, KeyError):
    """A transformation referenced a row, column, group or dataset column that does not exist."""

    def __init__(self, kind: str, ref: Any):
        self.kind = kind
        self.ref = ref
        super().__init__(f"Unknown {kind}: {ref!r}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class InvalidMergePattern(SummaryTableError):
    """Merge pattern placeholders do not match the source columns."""


class InvalidSpanner(SummaryTableError):
    """A column would belong to two spanners on the same header level."""


class UndefinedStatistic:
    """
    Sentinel for a statistic that is mathematically undefined
    (e.g. an odds ratio whose reference odds are zero).

    There is exactly one instance, ``UNDEFINED``. It is falsy and converts
    to NaN so numeric pandas code treats it as missing.
    """

    _instance: UndefinedStatistic | None = None

    def __new__(cls) -> UndefinedStatistic:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False

    def __float__(self) -> float:
        return math.nan

    def __copy__(self) -> UndefinedStatistic:
        return self

    def __deepcopy__(self, memo: dict) -> UndefinedStatistic:
        return self

    def __reduce__(self) -> tuple:
        return (UndefinedStatistic, ())


UNDEFINED = UndefinedStatistic()


def is_missing(value: Any) -> bool:
    """True for None, NaN/NA scalars and ``UNDEFINED``."""
    if value is None or value is UNDEFINED:
        return True
    if pd.api.types.is_scalar(value):
        return bool(pd.isna(value))
    return False
