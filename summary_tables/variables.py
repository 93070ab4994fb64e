"""
Variable descriptors: the tagged variant over categorical and continuous
variables that the aggregator dispatches on.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from config import CONFIG
from summary_tables.errors import UnknownVariableType


@dataclass(frozen=True)
class CategoricalVariable:
    """
    A categorical variable.

    Attributes:
        name: Column name in the records.
        label: Display label, defaults to the column name.
        levels: Preferred category order; observed categories not listed
            follow in first-appearance order.
        value_labels: Raw value -> display text (the ``map`` of variable metadata).
    """

    name: str
    label: str | None = None
    levels: tuple[Any, ...] | None = None
    value_labels: Mapping[Any, str] = field(default_factory=dict)

    kind = "categorical"

    @property
    def display_label(self) -> str:
        return self.label or self.name


@dataclass(frozen=True)
class ContinuousVariable:
    """A continuous variable with an optional unit."""

    name: str
    label: str | None = None
    unit: str | None = None

    kind = "continuous"

    @property
    def display_label(self) -> str:
        label = self.label or self.name
        if self.unit:
            fmt = CONFIG.get("analysis.unit_format", "{label} ({unit})")
            return fmt.format(label=label, unit=self.unit)
        return label


Variable = Union[CategoricalVariable, ContinuousVariable]

_TYPE_ALIASES = {
    "categorical": "categorical",
    "category": "categorical",
    "discrete": "categorical",
    "continuous": "continuous",
    "numeric": "continuous",
}


def variable_from_meta(name: str, meta: Mapping[str, Any] | None) -> Variable:
    """
    Build a descriptor from a metadata dict such as
    ``{"type": "Categorical", "label": "Sex", "map": {0: "Female", 1: "Male"}}``.

    Raises:
        UnknownVariableType: If ``type`` is missing or not recognized.
    """
    declared = (meta or {}).get("type")
    kind = _TYPE_ALIASES.get(str(declared).strip().lower()) if declared is not None else None
    if kind is None:
        raise UnknownVariableType(name, declared)

    label = meta.get("label")
    if kind == "categorical":
        levels = meta.get("levels")
        return CategoricalVariable(
            name=name,
            label=label,
            levels=tuple(levels) if levels is not None else None,
            value_labels=dict(meta.get("map") or {}),
        )
    return ContinuousVariable(name=name, label=label, unit=meta.get("unit"))


def coerce_variable(spec: Any, var_meta: Mapping[str, Mapping[str, Any]] | None = None) -> Variable:
    """
    Accept a descriptor, a column name (looked up in ``var_meta``) or a
    ``(name, meta)`` pair and return a descriptor.
    """
    if isinstance(spec, (CategoricalVariable, ContinuousVariable)):
        return spec
    if isinstance(spec, str):
        return variable_from_meta(spec, (var_meta or {}).get(spec))
    if isinstance(spec, Sequence) and len(spec) == 2 and isinstance(spec[0], str):
        return variable_from_meta(spec[0], spec[1])
    raise UnknownVariableType(repr(spec))
