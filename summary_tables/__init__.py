"""
Clinical summary tables: statistics, aggregation, table model and rendering.

Contains:
- stat_engine: per-group categorical/continuous statistics, Clopper-Pearson
  intervals and odds ratios
- aggregator: summaries over many variables, response (event-rate) summaries
- table_model: TableModel and its transformations
- formatting / selectors: number formats, column selectors and row filters
- renderer: TableModel -> Grid
- table_builders: ready-made demographics and response tables
"""

from summary_tables.aggregator import (
    aggregate,
    response_to_frame,
    summarize_response,
    summary_to_frame,
    summary_to_long,
)
from summary_tables.errors import (
    UNDEFINED,
    InvalidMergePattern,
    InvalidSpanner,
    SummaryTableError,
    UnknownReference,
    UnknownVariableType,
)
from summary_tables.renderer import Grid, render
from summary_tables.table_builders import build_demographics_table, build_response_table
from summary_tables.table_model import (
    CellLocation,
    ColumnLocation,
    RowGroupLocation,
    StubLocation,
    TableModel,
)
from summary_tables.variables import CategoricalVariable, ContinuousVariable

__all__ = [
    "UNDEFINED",
    "CategoricalVariable",
    "CellLocation",
    "ColumnLocation",
    "ContinuousVariable",
    "Grid",
    "InvalidMergePattern",
    "InvalidSpanner",
    "RowGroupLocation",
    "StubLocation",
    "SummaryTableError",
    "TableModel",
    "UnknownReference",
    "UnknownVariableType",
    "aggregate",
    "build_demographics_table",
    "build_response_table",
    "render",
    "response_to_frame",
    "summarize_response",
    "summary_to_frame",
    "summary_to_long",
]
