"""
🖨️ Renderer: turns a TableModel into a display Grid.

The Grid is the only contract downstream writers (HTML, PDF, plain text)
consume. Every cell is a finished string; footnote marks are reported with
their positions instead of being spliced into cell text.

Rendering reads the model and never changes it, so rendering the same model
twice yields equal grids.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import Any

from config import CONFIG
from logger import get_logger
from summary_tables.errors import UnknownReference
from summary_tables.formatting import FormatRule, format_cell
from summary_tables.table_model import (
    PLACEHOLDER_PATTERN,
    CellLocation,
    Column,
    ColumnLocation,
    MergeRule,
    Row,
    RowGroupLocation,
    StubLocation,
    TableModel,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class HeaderCell:
    label: str
    span: int = 1
    columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class GridRow:
    kind: str  # 'data' or 'group'
    stub: str
    cells: tuple[str, ...]
    indent: int = 0
    row_id: int | None = None
    group: str | None = None


@dataclass(frozen=True)
class ColumnLayout:
    id: str
    label: str
    width: Any
    align: str


@dataclass(frozen=True)
class PositionedMark:
    """Where a footnote mark goes: section is 'column_label', 'body', 'stub' or 'row_group'."""

    mark: str
    section: str
    column: str | None = None
    row_index: int | None = None


@dataclass(frozen=True)
class Grid:
    header_rows: tuple[tuple[HeaderCell, ...], ...]
    body: tuple[GridRow, ...]
    columns: tuple[ColumnLayout, ...]
    footnotes: dict[str, str] = field(default_factory=dict)
    marks: tuple[PositionedMark, ...] = ()
    notes: tuple[str, ...] = ()
    title: str | None = None
    subtitle: str | None = None
    stub_align: str = "left"

    def column_index(self, column_id: str) -> int:
        for i, c in enumerate(self.columns):
            if c.id == column_id:
                return i
        raise UnknownReference("column", column_id)

    def cell(self, row_id: int, column_id: str) -> str:
        """Finished text of the body cell for model row ``row_id``."""
        idx = self.column_index(column_id)
        for r in self.body:
            if r.kind == "data" and r.row_id == row_id:
                return r.cells[idx]
        raise UnknownReference("row", row_id)

    def as_lists(self) -> list[list[str]]:
        """
        Header and body as plain string rows. Spanning header cells are
        followed by empty strings; stubs are indented two spaces per level.
        """
        out = []
        for header in self.header_rows:
            line = []
            for cell in header:
                line.append(cell.label)
                line.extend([""] * (cell.span - 1))
            out.append(line)
        for r in self.body:
            out.append(["  " * r.indent + r.stub, *r.cells])
        return out


def footnote_mark(index: int, mode: str) -> str:
    """Mark for the ``index``-th (0-based) footnote: 1, 2, 3 or a..z, aa, bb."""
    if mode == "letters":
        letters = string.ascii_lowercase
        return letters[index % 26] * (index // 26 + 1)
    return str(index + 1)


def _format_rule(model: TableModel, row: Row, column_id: str) -> FormatRule | None:
    rule = None
    for entry in model.format_rules:
        if column_id in entry.columns and (entry.rows is None or row.id in entry.rows):
            rule = entry.rule
    return rule


def _formatted(model: TableModel, row: Row, column_id: str) -> str:
    return format_cell(
        row.values.get(column_id), _format_rule(model, row, column_id), model.missing_text
    )


def _merge_for(model: TableModel, row: Row, column_id: str) -> MergeRule | None:
    chosen = None
    for merge in model.merge_rules:
        if merge.target == column_id and (merge.rows is None or row.id in merge.rows):
            chosen = merge
    return chosen


def render_cell(model: TableModel, row: Row, column: Column) -> str:
    """Format, substitute missing values, then apply the winning merge pattern."""
    merge = _merge_for(model, row, column.id)
    if merge is not None:
        texts = [_formatted(model, row, s) for s in merge.sources]
        return PLACEHOLDER_PATTERN.sub(lambda m: texts[int(m.group(1)) - 1], merge.pattern)
    if column.synthetic:
        return model.missing_text
    return _formatted(model, row, column.id)


def _header_rows(model: TableModel, visible: list[Column]) -> list[tuple[HeaderCell, ...]]:
    rows = []
    for level in sorted({sp.level for sp in model.spanners}, reverse=True):
        owner = {}
        for sp in model.spanners:
            if sp.level == level:
                for cid in sp.columns:
                    owner[cid] = sp
        cells = [HeaderCell("")]
        run: list[str] = []
        run_spanner = None
        for col in visible:
            sp = owner.get(col.id)
            if sp is not None and sp is run_spanner:
                run.append(col.id)
                continue
            if run_spanner is not None:
                cells.append(HeaderCell(run_spanner.label, len(run), tuple(run)))
            if sp is None:
                cells.append(HeaderCell("", 1, (col.id,)))
                run, run_spanner = [], None
            else:
                run, run_spanner = [col.id], sp
        if run_spanner is not None:
            cells.append(HeaderCell(run_spanner.label, len(run), tuple(run)))
        rows.append(tuple(cells))

    rows.append((HeaderCell(model.stub_header), *(HeaderCell(c.label, 1, (c.id,)) for c in visible)))
    return rows


def _body(model: TableModel, visible: list[Column]) -> list[GridRow]:
    def data_row(row: Row) -> GridRow:
        return GridRow(
            kind="data",
            stub=row.stub,
            cells=tuple(render_cell(model, row, c) for c in visible),
            indent=row.indent,
            row_id=row.id,
            group=row.group,
        )

    body = [data_row(r) for r in model.rows if r.group is None]
    for label in model.row_groups:
        members = [r for r in model.rows if r.group == label]
        if not members:
            continue
        body.append(GridRow(kind="group", stub=label, cells=("",) * len(visible), group=label))
        body.extend(data_row(r) for r in members)
    return body


def _display_column(model: TableModel, row: Row, column_id: str, visible_ids: set[str]) -> str | None:
    if column_id in visible_ids:
        return column_id
    merge = _merge_for_source(model, row, column_id)
    if merge is not None and merge.target in visible_ids:
        return merge.target
    return None


def _merge_for_source(model: TableModel, row: Row, column_id: str) -> MergeRule | None:
    chosen = None
    for merge in model.merge_rules:
        if column_id in merge.sources and (merge.rows is None or row.id in merge.rows):
            chosen = merge
    return chosen


def _positions(
    model: TableModel,
    loc: Any,
    visible_ids: set[str],
    body_index: dict[int, int],
    group_index: dict[str, int],
) -> list[tuple[str, str | None, int | None]]:
    if isinstance(loc, ColumnLocation):
        return [("column_label", cid, None) for cid in loc.columns if cid in visible_ids]
    if isinstance(loc, CellLocation):
        row = model.row(loc.row)
        target = _display_column(model, row, loc.column, visible_ids)
        return [] if target is None else [("body", target, body_index[row.id])]
    if isinstance(loc, StubLocation):
        return [("stub", None, body_index[loc.row])]
    if isinstance(loc, RowGroupLocation) and loc.label in group_index:
        return [("row_group", None, group_index[loc.label])]
    return []


def _footnotes(
    model: TableModel, visible: list[Column], body: list[GridRow]
) -> tuple[dict[str, str], list[PositionedMark], list[str]]:
    """
    Marks go to footnotes with at least one visible position. A located note
    whose every position is hidden becomes an unmarked note instead.
    """
    visible_ids = {c.id for c in visible}
    body_index = {r.row_id: i for i, r in enumerate(body) if r.kind == "data"}
    group_index = {r.group: i for i, r in enumerate(body) if r.kind == "group"}

    placed = []
    for note in model.footnotes:
        loc = note.location
        positions = None if loc is None else _positions(model, loc, visible_ids, body_index, group_index)
        placed.append((note, positions))
    marked_texts = {note.text for note, positions in placed if positions}

    by_text: dict[str, str] = {}
    footnotes: dict[str, str] = {}
    marks: list[PositionedMark] = []
    notes: list[str] = []
    for note, positions in placed:
        if positions is None:
            notes.append(note.text)
            continue
        if note.text not in marked_texts:
            if note.text not in notes:
                notes.append(note.text)
            continue
        mark = by_text.get(note.text)
        if mark is None:
            mark = footnote_mark(len(footnotes), model.footnote_marks)
            by_text[note.text] = mark
            footnotes[mark] = note.text
        marks.extend(
            PositionedMark(mark, section, column=column, row_index=row_index)
            for section, column, row_index in positions
        )

    return footnotes, marks, notes


def render(model: TableModel) -> Grid:
    """
    Render ``model`` into a Grid.

    Cells are formatted with the last matching format rule, missing values
    are replaced by the model's missing text, and merge patterns are applied
    in declaration order (the last merge covering a cell wins). Header rows
    come one per spanner level, highest first, then the column labels. Rows
    without a group come first, then each row group as a header row followed
    by its members. Footnote marks are numbered in declaration order.
    """
    with logger.track_time("render"):
        visible = model.visible_columns()
        body = _body(model, visible)
        footnotes, marks, notes = _footnotes(model, visible, body)
        default_align = CONFIG.get("table.default_alignment", "center")
        grid = Grid(
            header_rows=tuple(_header_rows(model, visible)),
            body=tuple(body),
            columns=tuple(
                ColumnLayout(c.id, c.label, c.width, c.align or default_align) for c in visible
            ),
            footnotes=footnotes,
            marks=tuple(marks),
            notes=tuple(notes),
            title=model.title,
            subtitle=model.subtitle,
            stub_align=CONFIG.get("table.stub_alignment", "left"),
        )

    logger.debug(f"Rendered grid: {len(grid.body)} body rows x {len(grid.columns)} columns")
    return grid
