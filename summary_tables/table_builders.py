"""
📈 Ready-made clinical tables.

- build_demographics_table: baseline characteristics per arm
  (n (%), Mean (SD), Median, Min - Max)
- build_response_table: event rates with exact intervals and the odds ratio
  of comparator vs reference, overall and by subgroup

Both return a TableModel that callers may keep transforming before
``render``.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import pandas as pd

from config import CONFIG
from logger import get_logger
from summary_tables.aggregator import aggregate, resolve_comparison, summarize_response
from summary_tables.errors import is_missing
from summary_tables.formatting import FixedFormat, IntegerFormat, PercentFormat
from summary_tables.selectors import all_rows, rows_where
from summary_tables.stat_engine import resolve_confidence, group_masks
from summary_tables.table_model import ColumnLocation, TableModel

logger = get_logger(__name__)


def _present(model: TableModel, ids: Sequence[str]) -> bool:
    known = set(model.data_column_ids())
    return all(i in known for i in ids)


def _continuous_row(label: str):
    return rows_where(
        lambda r: r.meta.get("kind") == "continuous" and r.stub == label,
        description=f"continuous {label!r}",
    )


def _undefined(column_id: str):
    return rows_where(
        lambda r: is_missing(r.values.get(column_id)),
        description=f"{column_id} undefined",
    )


def build_demographics_table(
    records: pd.DataFrame,
    group_var: str,
    variables: Sequence[Any],
    groups: Sequence[Any] | None = None,
    total_label: str | None = None,
    var_meta: Mapping[str, Mapping[str, Any]] | None = None,
    title: str | None = None,
    spanner_label: str | None = None,
    stub_header: str = "Characteristic",
) -> TableModel:
    """
    Baseline characteristics table: one display column per group.

    Categorical rows show ``n (pct%)``; continuous variables show n,
    Mean (SD), Median and Min - Max. Column labels carry the group size.
    """
    logger.log_operation("build_demographics_table", "started", group=group_var)
    summary = aggregate(records, group_var, variables, groups, total_label, var_meta)
    model = TableModel.bind(summary)

    sizes = {g: int(mask.sum()) for g, mask in group_masks(records, group_var, groups, total_label).items()}
    header_fmt = CONFIG.get("table.header_n_format", "{group} (N={n})")
    labels = CONFIG.get("analysis.continuous_labels", {})
    decimals = CONFIG.get("table.continuous_decimals", 1)
    categorical = rows_where(lambda r: r.meta.get("kind") == "categorical", description="categorical")

    for g, n in sizes.items():
        if _present(model, [f"n_{g}"]):
            model.apply_format(f"n_{g}", IntegerFormat())
        if _present(model, [f"pct_{g}"]):
            model.apply_format(f"pct_{g}", PercentFormat())
        for stat in ("mean", "median"):
            if _present(model, [f"{stat}_{g}"]):
                model.apply_format(f"{stat}_{g}", FixedFormat(decimals))
        if _present(model, [f"sd_{g}"]):
            model.apply_format(f"sd_{g}", FixedFormat(decimals + 1))

        merges = [
            ([f"n_{g}", f"pct_{g}"], "{1} ({2})", categorical),
            ([f"n_{g}"], "{1}", _continuous_row(labels.get("n", "n"))),
            ([f"mean_{g}", f"sd_{g}"], "{1} ({2})", _continuous_row(labels.get("mean_sd", "Mean (SD)"))),
            ([f"median_{g}"], "{1}", _continuous_row(labels.get("median", "Median"))),
            ([f"min_{g}", f"max_{g}"], "{1} - {2}", _continuous_row(labels.get("range", "Min - Max"))),
        ]
        label = header_fmt.format(group=g, n=n)
        for sources, pattern, rows in merges:
            if _present(model, sources):
                model.merge_columns(sources, pattern, rows=rows, target=g, label=label)

    arms = [g for g in sizes if g != total_label and any(c.id == g for c in model.columns)]
    if spanner_label and arms:
        model.add_spanner(spanner_label, arms)

    model.indent_rows(all_rows(), 1)
    model.set_stub_header(stub_header)
    if title:
        model.set_title(title)

    display = [g for g in sizes if any(c.id == g for c in model.columns)]
    if display and any(r.meta.get("kind") == "categorical" for r in model.rows):
        model.add_footnote(
            ColumnLocation(display),
            "Percentages are based on the number of subjects in each group.",
        )
    if display and any(r.meta.get("kind") == "continuous" for r in model.rows):
        model.add_footnote(None, "SD = standard deviation.")

    logger.log_operation("build_demographics_table", "completed", rows=len(model.rows))
    return model


def build_response_table(
    records: pd.DataFrame,
    group_var: str,
    response_var: str,
    strata: Sequence[Any] | None = None,
    groups: Sequence[Any] | None = None,
    reference: Any = None,
    comparator: Any = None,
    event_values: Sequence[Any] | None = None,
    confidence: float | None = None,
    var_meta: Mapping[str, Mapping[str, Any]] | None = None,
    title: str | None = None,
    stub_header: str = "Subgroup",
) -> TableModel:
    """
    Event-rate table: per group ``events/total`` and ``pct (low, high)``
    under a group spanner, then ``OR (low, high)`` of comparator vs reference.
    Stratified subgroups are grouped under their stratum label.
    """
    logger.log_operation("build_response_table", "started", response=response_var)
    confidence = resolve_confidence(confidence)
    summaries = summarize_response(
        records,
        group_var,
        response_var,
        strata=strata,
        groups=groups,
        reference=reference,
        comparator=comparator,
        event_values=event_values,
        confidence=confidence,
        var_meta=var_meta,
    )
    model = TableModel.bind(summaries, group_column=None)

    group_keys = list(summaries[0].groups) if summaries else []
    reference, comparator = resolve_comparison(group_keys, reference, comparator)
    pct_decimals = CONFIG.get("table.pct_decimals", 1)
    ci_label = f"{confidence * 100:g}% CI"

    rate_columns = []
    for g in group_keys:
        count_id, rate_id = f"{g}:n", f"{g}:rate"
        model.apply_format([f"events_{g}", f"total_{g}"], IntegerFormat())
        model.merge_columns([f"events_{g}", f"total_{g}"], "{1}/{2}", target=count_id, label="n/N")
        group_cols = [count_id]
        if _present(model, [f"pct_{g}", f"lower_{g}", f"upper_{g}"]):
            model.apply_format([f"pct_{g}", f"lower_{g}", f"upper_{g}"], FixedFormat(pct_decimals))
            model.merge_columns(
                [f"pct_{g}", f"lower_{g}", f"upper_{g}"],
                "{1} ({2}, {3})",
                target=rate_id,
                label=f"% ({ci_label})",
            )
            model.merge_columns([f"pct_{g}"], "{1}", rows=_undefined(f"pct_{g}"), target=rate_id)
            group_cols.append(rate_id)
            rate_columns.append(rate_id)
        model.add_spanner(g, group_cols, spanner_id=f"group:{g}")

    if _present(model, ["or"]):
        or_label = f"Odds ratio ({ci_label})"
        if _present(model, ["or_lower", "or_upper"]):
            model.apply_format(["or", "or_lower", "or_upper"], FixedFormat(2))
            model.merge_columns(["or", "or_lower", "or_upper"], "{1} ({2}, {3})", label=or_label)
            # an estimate of 0 has no interval
            model.merge_columns(["or"], "{1}", rows=_undefined("or_lower"))
        else:
            model.apply_format(["or"], FixedFormat(2))
            model.relabel_columns({"or": or_label})
        model.add_spanner(f"{comparator} vs {reference}", ["or"], spanner_id="comparison")

    overall = CONFIG.get("analysis.overall_label", "Overall")
    for stratum in dict.fromkeys(s.stratum for s in summaries):
        if stratum == overall:
            continue
        members = rows_where(lambda r, s=stratum: r.meta.get("stratum") == s, description=stratum)
        model.add_row_group(stratum, members)
        model.indent_rows(members, 1)

    model.set_stub_header(stub_header)
    if title:
        model.set_title(title)
    if rate_columns:
        model.add_footnote(
            ColumnLocation(rate_columns), "Exact (Clopper-Pearson) confidence interval."
        )
    if any(c.id == "or" for c in model.columns):
        model.add_footnote(
            ColumnLocation(["or"]),
            "Wald confidence interval on the log-odds scale; no interval when a cell count is zero.",
        )

    logger.log_operation("build_response_table", "completed", rows=len(model.rows))
    return model
