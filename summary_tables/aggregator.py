"""
🧮 Aggregator: runs the statistics engine over a set of variables and a
grouping factor and produces the long/wide summary datasets that tables are
built from.

CRITICAL: the input records are NEVER modified. Summaries are plain
dataclasses and DataFrames built from scratch on every call.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd

from config import CONFIG
from logger import get_logger
from summary_tables.errors import (
    UNDEFINED,
    SummaryTableError,
    UnknownReference,
    UnknownVariableType,
    is_missing,
)
from summary_tables.stat_engine import (
    STATISTICS,
    OddsRatio,
    SummaryRow,
    clopper_pearson,
    group_masks,
    odds_ratio_ci,
    resolve_groups,
    summarize_categorical,
    summarize_continuous,
)
from summary_tables.variables import (
    CategoricalVariable,
    ContinuousVariable,
    Variable,
    coerce_variable,
)

logger = get_logger(__name__)

_SUMMARIZERS: dict[type, Callable[..., list[SummaryRow]]] = {
    CategoricalVariable: summarize_categorical,
    ContinuousVariable: summarize_continuous,
}


def aggregate(
    records: pd.DataFrame,
    group_var: str,
    variables: Sequence[Any],
    groups: Sequence[Any] | None = None,
    total_label: str | None = None,
    var_meta: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[SummaryRow]:
    """
    Summarize every variable per group, in declaration order.

    Args:
        records: One row per subject, already filtered by the caller.
        group_var: Column holding the arm / group assignment.
        variables: Descriptors, column names resolved through ``var_meta``,
            or ``(name, meta)`` pairs.
        groups: Explicit group order; defaults to first appearance.
        total_label: When given, adds a pseudo-group over all records.
        var_meta: Metadata dicts keyed by column name
            (``{"type": "Continuous", "label": "Age", "unit": "years"}``).

    Returns:
        Concatenated SummaryRows.

    Raises:
        UnknownVariableType: A variable has no categorical/continuous type.
        UnknownReference: The group or a variable column is not in ``records``.
    """
    logger.log_operation("aggregate", "started", variables=len(variables), records=len(records))
    logger.log_data_summary(
        "records", records.shape, {str(c): str(t) for c, t in records.dtypes.items()}
    )

    try:
        descriptors = [coerce_variable(v, var_meta) for v in variables]
        group_order = resolve_groups(records, group_var, groups)

        rows: list[SummaryRow] = []
        with logger.track_time("aggregate"):
            for var in descriptors:
                rows.extend(_dispatch(var)(records, group_var, var, group_order, total_label))
    except SummaryTableError as e:
        logger.log_operation("aggregate", "failed", error=e)
        raise

    logger.log_analysis("summary", group_var, len(descriptors), len(records))
    logger.log_operation("aggregate", "completed", rows=len(rows))
    return rows


def _dispatch(var: Variable) -> Callable[..., list[SummaryRow]]:
    summarizer = _SUMMARIZERS.get(type(var))
    if summarizer is None:
        raise UnknownVariableType(getattr(var, "name", repr(var)), type(var).__name__)
    return summarizer


def _group_order(rows: Sequence[Any]) -> list[str]:
    seen: dict[str, None] = {}
    for row in rows:
        for g in row.groups:
            seen.setdefault(g, None)
    return list(seen)


def summary_to_frame(rows: Sequence[SummaryRow]) -> pd.DataFrame:
    """
    Wide summary dataset: ``variable, kind, category, label`` followed by one
    ``{statistic}_{group}`` column per statistic and group (group-major).
    """
    groups = _group_order(rows)
    stat_columns = [f"{s}_{g}" for g in groups for s in STATISTICS]

    records = []
    for row in rows:
        record = {
            "variable": row.variable,
            "kind": row.kind,
            "category": row.category,
            "label": row.label,
        }
        for g in groups:
            values = row.stats[g].as_dict() if g in row.stats else {}
            for s in STATISTICS:
                record[f"{s}_{g}"] = values.get(s, np.nan)
        records.append(record)

    return pd.DataFrame(records, columns=["variable", "kind", "category", "label", *stat_columns])


def summary_to_long(rows: Sequence[SummaryRow]) -> pd.DataFrame:
    """
    Normalized long form: one line per (row, group, statistic) with a value.
    """
    records = [
        {
            "variable": row.variable,
            "category": row.category,
            "label": row.label,
            "group": g,
            "statistic": s,
            "value": value,
        }
        for row in rows
        for g, group_stats in row.stats.items()
        for s, value in group_stats.as_dict().items()
        if not is_missing(value)
    ]
    return pd.DataFrame(
        records, columns=["variable", "category", "label", "group", "statistic", "value"]
    )


# =============================================================================
# RESPONSE SUMMARIES
# =============================================================================


@dataclass
class GroupResponse:
    """Event counts of one group within one subgroup; percentages are 0..100."""

    events: int
    total: int
    pct: Any
    lower: Any
    upper: Any


@dataclass
class ResponseSummary:
    """One subgroup line of an event-rate / odds-ratio table."""

    stratum: str
    subgroup: str
    groups: dict[str, GroupResponse] = field(default_factory=dict)
    odds_ratio: OddsRatio = OddsRatio(UNDEFINED, UNDEFINED, UNDEFINED)


def _stratum_variable(
    spec: Any, var_meta: Mapping[str, Mapping[str, Any]] | None
) -> CategoricalVariable:
    if isinstance(spec, CategoricalVariable):
        return spec
    if isinstance(spec, str):
        meta = (var_meta or {}).get(spec) or {}
        levels = meta.get("levels")
        return CategoricalVariable(
            name=spec,
            label=meta.get("label"),
            levels=tuple(levels) if levels is not None else None,
            value_labels=dict(meta.get("map") or {}),
        )
    raise UnknownVariableType(repr(spec), "stratum")


def resolve_comparison(
    group_keys: Sequence[str], reference: Any = None, comparator: Any = None
) -> tuple[str | None, str | None]:
    """
    Pick the reference (default: first group) and comparator (default: the
    first other group) for odds ratios.

    Raises:
        UnknownReference: An explicit reference or comparator is not a group.
    """
    reference = str(reference) if reference is not None else (group_keys[0] if group_keys else None)
    if comparator is not None:
        comparator = str(comparator)
    else:
        comparator = next((g for g in group_keys if g != reference), None)
    for g in (reference, comparator):
        if g is not None and g not in group_keys:
            raise UnknownReference("group", g)
    return reference, comparator


def summarize_response(
    records: pd.DataFrame,
    group_var: str,
    response_var: str,
    strata: Sequence[Any] | None = None,
    groups: Sequence[Any] | None = None,
    reference: Any = None,
    comparator: Any = None,
    event_values: Sequence[Any] | None = None,
    confidence: float | None = None,
    overall_label: str | None = None,
    var_meta: Mapping[str, Mapping[str, Any]] | None = None,
) -> list[ResponseSummary]:
    """
    Event rates per group with exact intervals, plus the comparator-vs-reference
    odds ratio, for the whole population and each level of every stratum.

    Subjects with a missing response are left out of both events and totals.
    The reference defaults to the first group and the comparator to the second.

    Raises:
        UnknownReference: Missing dataset column or an unknown reference/comparator.
    """
    logger.log_operation("summarize_response", "started", response=response_var, records=len(records))

    try:
        if response_var not in records.columns:
            raise UnknownReference("dataset column", response_var)
        masks = group_masks(records, group_var, groups)

        reference, comparator = resolve_comparison(list(masks), reference, comparator)

        if event_values is None:
            event_values = CONFIG.get("analysis.event_values", [1, True, "Y", "Yes"])
        response = records[response_var]
        answered = response.notna()
        event = answered & response.astype(object).isin(list(event_values))

        overall = overall_label or CONFIG.get("analysis.overall_label", "Overall")
        subgroups = [(overall, overall, pd.Series(True, index=records.index))]
        for spec in strata or []:
            var = _stratum_variable(spec, var_meta)
            if var.name not in records.columns:
                raise UnknownReference("dataset column", var.name)
            for level_label, level_mask in _stratum_levels(records[var.name], var):
                subgroups.append((var.display_label, level_label, level_mask))

        summaries = []
        with logger.track_time("summarize_response"):
            for stratum, subgroup, sub_mask in subgroups:
                summary = ResponseSummary(stratum=stratum, subgroup=subgroup)
                for g, mask in masks.items():
                    in_cell = mask & sub_mask & answered
                    events, total = int((event & in_cell).sum()), int(in_cell.sum())
                    lower, upper = clopper_pearson(events, total, confidence)
                    summary.groups[g] = GroupResponse(
                        events=events,
                        total=total,
                        pct=100 * events / total if total else UNDEFINED,
                        lower=lower,
                        upper=upper,
                    )
                if reference is not None and comparator is not None:
                    comp, ref = summary.groups[comparator], summary.groups[reference]
                    summary.odds_ratio = odds_ratio_ci(
                        comp.events, comp.total, ref.events, ref.total, confidence
                    )
                summaries.append(summary)
    except SummaryTableError as e:
        logger.log_operation("summarize_response", "failed", error=e)
        raise

    logger.log_operation("summarize_response", "completed", subgroups=len(summaries))
    return summaries


def _stratum_levels(series: pd.Series, var: CategoricalVariable):
    present = series.dropna().astype(object)
    observed = list(pd.unique(present))
    ordered = list(var.levels or [])
    ordered.extend(v for v in observed if v not in ordered)
    for level in ordered:
        mask = series.notna() & series.astype(object).eq(level)
        yield var.value_labels.get(level, str(level)), mask


def response_to_frame(summaries: Sequence[ResponseSummary]) -> pd.DataFrame:
    """
    Wide response dataset: ``stratum, subgroup``, then ``events_{g}, total_{g},
    pct_{g}, lower_{g}, upper_{g}`` per group and ``or, or_lower, or_upper``.
    Undefined statistics stay ``UNDEFINED``.
    """
    groups = _group_order(summaries)
    fields = ("events", "total", "pct", "lower", "upper")
    columns = ["stratum", "subgroup", *(f"{f}_{g}" for g in groups for f in fields), "or", "or_lower", "or_upper"]

    records = []
    for s in summaries:
        record: dict[str, Any] = {"stratum": s.stratum, "subgroup": s.subgroup}
        for g in groups:
            resp = s.groups.get(g)
            for f in fields:
                record[f"{f}_{g}"] = getattr(resp, f) if resp is not None else UNDEFINED
        record["or"], record["or_lower"], record["or_upper"] = s.odds_ratio
        records.append(record)

    return pd.DataFrame(records, columns=columns)
