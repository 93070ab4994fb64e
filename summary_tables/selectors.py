"""
Column selectors and row filters.

A selector is a predicate over table columns (or rows) evaluated once, when a
transformation is applied, into a concrete list of ids. Explicit ids must
exist; pattern selectors may match nothing.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Union

from summary_tables.errors import UnknownReference


@dataclass(frozen=True)
class ColumnSelector:
    description: str
    predicate: Callable[[Any], bool] | None = None
    ids: tuple[str, ...] | None = None

    def resolve(self, columns: Sequence[Any]) -> list[str]:
        """Return matching column ids in table order (explicit ids keep their given order)."""
        if self.ids is not None:
            known = {c.id for c in columns}
            for cid in self.ids:
                if cid not in known:
                    raise UnknownReference("column", cid)
            return list(dict.fromkeys(self.ids))
        return [c.id for c in columns if self.predicate(c)]


@dataclass(frozen=True)
class RowFilter:
    description: str
    predicate: Callable[[Any], bool] | None = None
    ids: tuple[int, ...] | None = None

    def resolve(self, rows: Sequence[Any]) -> list[int]:
        """Return matching row ids in table order (explicit ids keep their given order)."""
        if self.ids is not None:
            known = {r.id for r in rows}
            for rid in self.ids:
                if rid not in known:
                    raise UnknownReference("row", rid)
            return list(dict.fromkeys(self.ids))
        return [r.id for r in rows if self.predicate(r)]

    def matches(self, row: Any) -> bool:
        if self.ids is not None:
            return row.id in self.ids
        return bool(self.predicate(row))


ColumnSpec = Union[str, Iterable[str], ColumnSelector]
RowSpec = Union[int, Iterable[int], RowFilter, None]


def cols(*ids: str) -> ColumnSelector:
    return ColumnSelector(description=f"cols{ids}", ids=tuple(ids))


def cols_starting_with(prefix: str) -> ColumnSelector:
    return ColumnSelector(
        description=f"starts_with({prefix!r})",
        predicate=lambda c: c.id.startswith(prefix),
    )


def cols_ending_with(suffix: str) -> ColumnSelector:
    return ColumnSelector(
        description=f"ends_with({suffix!r})",
        predicate=lambda c: c.id.endswith(suffix),
    )


def cols_where(predicate: Callable[[Any], bool], description: str = "where") -> ColumnSelector:
    return ColumnSelector(description=description, predicate=predicate)


def all_cols() -> ColumnSelector:
    return ColumnSelector(description="everything", predicate=lambda c: True)


def rows(*ids: int) -> RowFilter:
    return RowFilter(description=f"rows{ids}", ids=tuple(ids))


def rows_in_group(label: str) -> RowFilter:
    return RowFilter(description=f"group({label!r})", predicate=lambda r: r.group == label)


def rows_with_stub(*labels: str) -> RowFilter:
    wanted = frozenset(labels)
    return RowFilter(description=f"stub{labels}", predicate=lambda r: r.stub in wanted)


def rows_where(predicate: Callable[[Any], bool], description: str = "where") -> RowFilter:
    return RowFilter(description=description, predicate=predicate)


def all_rows() -> RowFilter:
    return RowFilter(description="everything", predicate=lambda r: True)


def as_column_selector(spec: ColumnSpec) -> ColumnSelector:
    if isinstance(spec, ColumnSelector):
        return spec
    if isinstance(spec, str):
        return cols(spec)
    return cols(*spec)


def as_row_filter(spec: RowSpec) -> RowFilter:
    if spec is None:
        return all_rows()
    if isinstance(spec, RowFilter):
        return spec
    if isinstance(spec, int):
        return rows(spec)
    return rows(*spec)
