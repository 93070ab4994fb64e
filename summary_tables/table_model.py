"""
📋 Table Model: the abstract, transformation-driven representation of a
summary table.

A model is built once from a summary dataset (``TableModel.bind``) and then
shaped by an ordered sequence of transformations (formats, merges, spanners,
row groups, labels, widths, indentation, footnotes). Nothing is rendered
until ``summary_tables.renderer.render`` reads the model.

Transformations mutate the model in place and return it so that calls can be
chained; ``snapshot()`` gives an independent copy. A model has a single owner
and is not safe for concurrent mutation.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

import pandas as pd

from config import CONFIG
from logger import get_logger
from summary_tables.aggregator import (
    ResponseSummary,
    response_to_frame,
    summary_to_frame,
)
from summary_tables.errors import (
    InvalidMergePattern,
    InvalidSpanner,
    UnknownReference,
    is_missing,
)
from summary_tables.formatting import FormatRule
from summary_tables.selectors import (
    ColumnSpec,
    RowSpec,
    as_column_selector,
    as_row_filter,
)
from summary_tables.stat_engine import SummaryRow

logger = get_logger(__name__)

ALIGNMENTS = ("left", "center", "right")
MARK_MODES = ("numeric", "letters")
MAX_MERGE_SOURCES = 4
PLACEHOLDER_PATTERN = re.compile(r"\{(\d+)\}")
_DEFAULT = object()


@dataclass
class Column:
    id: str
    label: str
    width: Any = None
    align: str | None = None
    synthetic: bool = False


@dataclass
class Row:
    id: int
    stub: str
    group: str | None = None
    indent: int = 0
    meta: dict[str, Any] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)


@dataclass
class Spanner:
    id: str
    label: str
    level: int
    columns: tuple[str, ...]


@dataclass
class FormatEntry:
    columns: frozenset[str]
    rows: frozenset[int] | None
    rule: FormatRule


@dataclass
class MergeRule:
    sources: tuple[str, ...]
    pattern: str
    target: str
    rows: frozenset[int] | None


@dataclass(frozen=True)
class ColumnLocation:
    """Footnote on column labels."""

    columns: Any


@dataclass(frozen=True)
class CellLocation:
    row: int
    column: str


@dataclass(frozen=True)
class StubLocation:
    row: int


@dataclass(frozen=True)
class RowGroupLocation:
    label: str


FootnoteLocation = Union[ColumnLocation, CellLocation, StubLocation, RowGroupLocation, None]


@dataclass
class Footnote:
    location: FootnoteLocation
    text: str


def _default_columns(summary: Any) -> tuple[str, str | None, tuple[str, ...]]:
    if isinstance(summary, pd.DataFrame):
        group = "category" if "category" in summary.columns else None
        return "label", group, ("variable", "kind")
    if summary and isinstance(summary[0], ResponseSummary):
        return "subgroup", "stratum", ("stratum",)
    return "label", "category", ("variable", "kind")


def _as_frame(summary: Any) -> pd.DataFrame:
    if isinstance(summary, pd.DataFrame):
        return summary.copy(deep=True)
    items = list(summary)
    if items and isinstance(items[0], ResponseSummary):
        return response_to_frame(items)
    if all(isinstance(item, SummaryRow) for item in items):
        return summary_to_frame(items)
    raise TypeError("summary must be a DataFrame, SummaryRows or ResponseSummaries")


class TableModel:
    """
    Rows, columns, groupings and rules of one table.

    Column ids are unique and stable; data columns carry values copied from
    the bound summary, synthetic columns are created by merges and only show
    merged text.
    """

    def __init__(self) -> None:
        self.columns: list[Column] = []
        self.rows: list[Row] = []
        self.row_groups: list[str] = []
        self.spanners: list[Spanner] = []
        self.merge_rules: list[MergeRule] = []
        self.format_rules: list[FormatEntry] = []
        self.footnotes: list[Footnote] = []
        display = CONFIG.get_section("table")
        self.missing_text: str = display.get("missing_text", "-")
        self.footnote_marks: str = display.get("footnote_marks", "numeric")
        self.stub_header: str = ""
        self.title: str | None = None
        self.subtitle: str | None = None

    # ------------------------------------------------------------------
    # construction
    # ------------------------------------------------------------------

    @classmethod
    def bind(
        cls,
        summary: pd.DataFrame | Sequence[SummaryRow] | Sequence[ResponseSummary],
        stub_column: str | None = None,
        group_column: Any = _DEFAULT,
        meta_columns: Sequence[str] | None = None,
    ) -> TableModel:
        """
        Create a model from a summary dataset.

        One row per summary record: the stub comes from ``stub_column`` and the
        row group from ``group_column`` (``None`` for no grouping; omitted means
        the default for the summary type). Every other column that holds at
        least one non-missing value becomes a data column; ``meta_columns``
        values are kept on the rows for filtering only.

        The data are copied; later changes to ``summary`` do not affect the model.
        """
        default_stub, default_group, default_meta = _default_columns(summary)
        stub_column = stub_column or default_stub
        group_column = default_group if group_column is _DEFAULT else group_column
        meta_columns = tuple(default_meta if meta_columns is None else meta_columns)

        frame = _as_frame(summary)
        for name in (stub_column, group_column):
            if name is not None and name not in frame.columns:
                raise UnknownReference("summary column", name)

        reserved = {stub_column, group_column, *meta_columns}
        # column ids are strings; keep the frame's own labels for lookups
        data_columns = {
            str(c): c
            for c in frame.columns
            if c not in reserved and not all(is_missing(v) for v in frame[c])
        }

        model = cls()
        model.columns = [Column(id=c, label=c) for c in data_columns]
        for position, record in enumerate(frame.to_dict("records")):
            group = record.get(group_column) if group_column is not None else None
            group = None if is_missing(group) else str(group)
            if group is not None and group not in model.row_groups:
                model.row_groups.append(group)
            model.rows.append(
                Row(
                    id=position,
                    stub="" if is_missing(record.get(stub_column)) else str(record[stub_column]),
                    group=group,
                    meta={m: record[m] for m in meta_columns if m in record},
                    values={cid: record[c] for cid, c in data_columns.items()},
                )
            )

        logger.debug(
            f"Bound table: {len(model.rows)} rows, {len(model.columns)} data columns, "
            f"{len(model.row_groups)} row groups"
        )
        return model

    def snapshot(self) -> TableModel:
        """Independent deep copy of the current state."""
        return copy.deepcopy(self)

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    def column(self, column_id: str) -> Column:
        for c in self.columns:
            if c.id == column_id:
                return c
        raise UnknownReference("column", column_id)

    def row(self, row_id: int) -> Row:
        for r in self.rows:
            if r.id == row_id:
                return r
        raise UnknownReference("row", row_id)

    def value(self, row_id: int, column_id: str) -> Any:
        """Underlying (unformatted) value of a data cell."""
        if self.column(column_id).synthetic:
            raise UnknownReference("data column", column_id)
        return self.row(row_id).values.get(column_id)

    def data_column_ids(self) -> list[str]:
        return [c.id for c in self.columns if not c.synthetic]

    def hidden_column_ids(self) -> set[str]:
        """Merge sources other than merge targets."""
        targets = {m.target for m in self.merge_rules}
        return {s for m in self.merge_rules for s in m.sources if s not in targets}

    def visible_columns(self) -> list[Column]:
        hidden = self.hidden_column_ids()
        return [c for c in self.columns if c.id not in hidden]

    def _columns(self, spec: ColumnSpec, data_only: bool = False) -> list[str]:
        pool = [c for c in self.columns if not c.synthetic] if data_only else self.columns
        selector = as_column_selector(spec)
        if data_only and selector.ids is not None:
            for cid in selector.ids:
                if any(c.id == cid and c.synthetic for c in self.columns):
                    raise UnknownReference("data column", cid)
        return selector.resolve(pool)

    def _rows(self, spec: RowSpec) -> frozenset[int] | None:
        if spec is None:
            return None
        return frozenset(as_row_filter(spec).resolve(self.rows))

    # ------------------------------------------------------------------
    # formatting
    # ------------------------------------------------------------------

    def apply_format(self, columns: ColumnSpec, rule: FormatRule, rows: RowSpec = None) -> TableModel:
        """
        Attach a number format to data columns, optionally restricted to rows.
        Later rules win for the same (column, row) cell.
        """
        entry = FormatEntry(
            columns=frozenset(self._columns(columns, data_only=True)),
            rows=self._rows(rows),
            rule=rule,
        )
        self.format_rules.append(entry)
        return self

    def sub_missing(self, text: str) -> TableModel:
        """Text shown for missing or undefined values everywhere in the table."""
        self.missing_text = str(text)
        return self

    # ------------------------------------------------------------------
    # merging
    # ------------------------------------------------------------------

    def merge_columns(
        self,
        sources: Sequence[str],
        pattern: str,
        rows: RowSpec = None,
        target: str | None = None,
        label: str | None = None,
    ) -> TableModel:
        """
        Combine the formatted text of up to four data columns through ``pattern``.

        ``{1}``, ``{2}``, ... in ``pattern`` stand for the sources in order and
        must match their number exactly. The result is written to ``target``
        (default: the first source) on the selected rows. A target id that does
        not exist yet creates a synthetic column at the first source's position.
        Non-target sources are hidden from the grid but stay available to later
        rules and merges; for a given (target, row) the last merge wins.

        Raises:
            UnknownReference: A source is not a data column of this table.
            InvalidMergePattern: Wrong number of sources or placeholders.
        """
        sources = tuple(as_column_selector(sources).ids or self._columns(sources))
        if not 1 <= len(sources) <= MAX_MERGE_SOURCES:
            raise InvalidMergePattern(
                f"merge takes 1 to {MAX_MERGE_SOURCES} source columns, got {len(sources)}"
            )
        for sid in sources:
            if self.column(sid).synthetic:
                raise UnknownReference("data column", sid)

        placeholders = {int(n) for n in PLACEHOLDER_PATTERN.findall(pattern)}
        expected = set(range(1, len(sources) + 1))
        if placeholders != expected:
            raise InvalidMergePattern(
                f"pattern {pattern!r} uses placeholders {sorted(placeholders)} "
                f"but {len(sources)} source column(s) were given"
            )

        target = target or sources[0]
        existing = next((c for c in self.columns if c.id == target), None)
        if existing is None:
            position = self.columns.index(self.column(sources[0]))
            self.columns.insert(
                position,
                Column(id=target, label=label or self.column(sources[0]).label, synthetic=True),
            )
        elif label is not None:
            existing.label = label

        self.merge_rules.append(
            MergeRule(sources=sources, pattern=pattern, target=target, rows=self._rows(rows))
        )
        return self

    # ------------------------------------------------------------------
    # structure
    # ------------------------------------------------------------------

    def add_spanner(
        self,
        label: str,
        columns: ColumnSpec,
        level: int = 1,
        spanner_id: str | None = None,
    ) -> TableModel:
        """
        Group columns under a header label on ``level`` (1 sits directly above
        the column labels). A column joins at most one spanner per level.
        """
        if not isinstance(level, int) or level < 1:
            raise ValueError(f"spanner level must be a positive integer, got {level!r}")
        ids = tuple(self._columns(columns))
        spanner_id = spanner_id or label
        for sp in self.spanners:
            if sp.level != level:
                continue
            if sp.id == spanner_id:
                raise InvalidSpanner(f"spanner id {spanner_id!r} already used on level {level}")
            overlap = set(sp.columns) & set(ids)
            if overlap:
                raise InvalidSpanner(
                    f"column(s) {sorted(overlap)} already under spanner {sp.label!r} on level {level}"
                )
        self.spanners.append(Spanner(id=spanner_id, label=label, level=level, columns=ids))
        return self

    def add_row_group(self, label: str, rows: RowSpec) -> TableModel:
        """Move rows into the named group, creating it after existing groups if new."""
        row_ids = self._rows(rows) or frozenset()
        label = str(label)
        if label not in self.row_groups:
            self.row_groups.append(label)
        for r in self.rows:
            if r.id in row_ids:
                r.group = label
        return self

    def set_width(self, columns: ColumnSpec, width: Any) -> TableModel:
        for cid in self._columns(columns):
            self.column(cid).width = width
        return self

    def set_alignment(self, columns: ColumnSpec, align: str) -> TableModel:
        if align not in ALIGNMENTS:
            raise ValueError(f"alignment must be one of {ALIGNMENTS}, got {align!r}")
        for cid in self._columns(columns):
            self.column(cid).align = align
        return self

    def relabel_columns(self, mapping: Mapping[str, str]) -> TableModel:
        # validate everything before touching anything
        targets = [self.column(cid) for cid in mapping]
        for col in targets:
            col.label = str(mapping[col.id])
        return self

    def indent_rows(self, rows: RowSpec, level: int) -> TableModel:
        if not isinstance(level, int) or level < 0:
            raise ValueError(f"indent level must be a non-negative integer, got {level!r}")
        row_ids = self._rows(rows)
        for r in self.rows:
            if row_ids is None or r.id in row_ids:
                r.indent = level
        return self

    def set_stub_header(self, text: str) -> TableModel:
        self.stub_header = str(text)
        return self

    def set_title(self, title: str | None, subtitle: str | None = None) -> TableModel:
        self.title = title
        self.subtitle = subtitle
        return self

    # ------------------------------------------------------------------
    # footnotes
    # ------------------------------------------------------------------

    def set_footnote_marks(self, mode: str) -> TableModel:
        """``"numeric"`` (1, 2, 3) or ``"letters"`` (a, b, c)."""
        if mode not in MARK_MODES:
            raise ValueError(f"footnote marks must be one of {MARK_MODES}, got {mode!r}")
        self.footnote_marks = mode
        return self

    def add_footnote(self, location: FootnoteLocation, text: str) -> TableModel:
        """
        Append a footnote. Marks are assigned when rendering, in declaration
        order; a ``None`` location adds an unmarked general note.
        """
        if isinstance(location, ColumnLocation):
            location = ColumnLocation(tuple(self._columns(location.columns)))
        elif isinstance(location, CellLocation):
            self.row(location.row)
            self.column(location.column)
        elif isinstance(location, StubLocation):
            self.row(location.row)
        elif isinstance(location, RowGroupLocation):
            if location.label not in self.row_groups:
                raise UnknownReference("row group", location.label)
        elif location is not None:
            raise TypeError(f"unsupported footnote location: {location!r}")
        self.footnotes.append(Footnote(location=location, text=str(text)))
        return self

    def __repr__(self) -> str:
        return (
            f"TableModel(rows={len(self.rows)}, columns={len(self.columns)}, "
            f"merges={len(self.merge_rules)}, footnotes={len(self.footnotes)})"
        )
