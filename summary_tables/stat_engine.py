"""
📊 Statistics Engine for Clinical Summary Tables

Pure per-group statistics used to build demographic and response tables.

Functions:
    - summarize_categorical: n and fraction per (category, group)
    - summarize_continuous: n, mean, SD, median, min, max per group
    - clopper_pearson: exact binomial interval (F-distribution form)
    - odds_ratio_ci: odds ratio with log-scale Wald interval

Every function is deterministic and free of side effects; the input
DataFrame is never modified.

References:
    Clopper, C.J. & Pearson, E.S. (1934). The use of confidence or fiducial
    limits illustrated in the case of the binomial. Biometrika 26(4).
    Woolf, B. (1955). On estimating the relation between blood group and disease.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, NamedTuple

import numpy as np
import pandas as pd
from scipy import stats

from config import CONFIG
from summary_tables.errors import UNDEFINED, UnknownReference
from summary_tables.variables import CategoricalVariable, ContinuousVariable

STATISTICS = ("n", "pct", "mean", "sd", "median", "min", "max")


@dataclass
class GroupStatistics:
    """Statistics of one summary row for one group; inapplicable fields stay NaN."""

    n: float = np.nan
    pct: float = np.nan
    mean: float = np.nan
    sd: float = np.nan
    median: float = np.nan
    min: float = np.nan
    max: float = np.nan

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in STATISTICS}


@dataclass
class SummaryRow:
    """One (variable, category-or-statistic) line of a summary."""

    variable: str
    kind: str
    category: str
    label: str
    stats: dict[str, GroupStatistics] = field(default_factory=dict)

    @property
    def groups(self) -> list[str]:
        return list(self.stats)


class Interval(NamedTuple):
    low: Any
    high: Any


class OddsRatio(NamedTuple):
    estimate: Any
    low: Any
    high: Any

    @property
    def is_defined(self) -> bool:
        return self.estimate is not UNDEFINED

    @property
    def interval_defined(self) -> bool:
        return self.low is not UNDEFINED and self.high is not UNDEFINED


def resolve_confidence(confidence: float | None) -> float:
    if confidence is None:
        confidence = CONFIG.get("analysis.confidence_level", 0.95)
    if not 0 < confidence < 1:
        raise ValueError(f"confidence must be between 0 and 1, got {confidence}")
    return float(confidence)


def safe_group_compare(series: pd.Series, val: Any) -> pd.Series:
    """
    Robust group comparison handling numeric and string mismatches.
    """
    if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
        try:
            return series == float(val)
        except (ValueError, TypeError):
            return series.astype(str) == str(val)

    return series.astype(str) == str(val)


def resolve_groups(
    records: pd.DataFrame, group_var: str, groups: Sequence[Any] | None = None
) -> list[Any]:
    """
    Return group values in explicit order, or in first-appearance order.
    Records with a missing group value belong to no group.
    """
    if group_var not in records.columns:
        raise UnknownReference("dataset column", group_var)
    if groups is not None:
        return list(groups)
    return list(pd.unique(records[group_var].dropna()))


def group_masks(
    records: pd.DataFrame,
    group_var: str,
    groups: Sequence[Any] | None = None,
    total_label: str | None = None,
) -> dict[str, pd.Series]:
    """
    Pre-compute one boolean mask per group, keyed by the group's display text.
    ``total_label`` appends a pseudo-group covering every grouped record.
    """
    masks = {}
    for g in resolve_groups(records, group_var, groups):
        masks[str(g)] = safe_group_compare(records[group_var], g)
    if total_label is not None:
        masks[str(total_label)] = records[group_var].notna()
    return masks


def _require_column(records: pd.DataFrame, name: str) -> pd.Series:
    if name not in records.columns:
        raise UnknownReference("dataset column", name)
    return records[name]


def _category_order(values: pd.Series, levels: Sequence[Any] | None) -> list[Any]:
    observed = list(pd.unique(values))
    if not levels:
        return observed
    ordered = list(levels)
    ordered.extend(v for v in observed if not any(_same_category(v, lvl) for lvl in ordered))
    return ordered


def _same_category(a: Any, b: Any) -> bool:
    if a == b:
        return True
    return str(a) == str(b)


def summarize_categorical(
    records: pd.DataFrame,
    group_var: str,
    variable: CategoricalVariable,
    groups: Sequence[Any] | None = None,
    total_label: str | None = None,
) -> list[SummaryRow]:
    """
    Count each category per group and divide by the group's record count.

    Categories follow ``variable.levels`` first, then first appearance in
    the records. Unobserved (category, group) pairs are reported as zero.
    Missing values are counted under the configured missing-category label
    so that per-group counts always sum to the group size.

    Returns:
        One SummaryRow per category; ``pct`` is a fraction (0..1).
    """
    series = _require_column(records, variable.name)
    masks = group_masks(records, group_var, groups, total_label)
    totals = {g: int(mask.sum()) for g, mask in masks.items()}

    missing = series.isna()
    present = series[~missing].astype(object)
    category = variable.display_label

    rows = []
    for cat in _category_order(present, variable.levels):
        hit = series.astype(object).eq(cat) & ~missing
        if not hit.any() and isinstance(cat, str):
            hit = series.astype(str).eq(cat) & ~missing
        label = variable.value_labels.get(cat, str(cat))
        rows.append(_count_row(variable.name, category, label, hit, masks, totals))

    if missing.any():
        label = CONFIG.get("analysis.missing_category_label", "Missing")
        rows.append(_count_row(variable.name, category, label, missing, masks, totals))

    return rows


def _count_row(
    name: str,
    category: str,
    label: str,
    hit: pd.Series,
    masks: dict[str, pd.Series],
    totals: dict[str, int],
) -> SummaryRow:
    row = SummaryRow(variable=name, kind="categorical", category=category, label=label)
    for g, mask in masks.items():
        n = int((hit & mask).sum())
        pct = n / totals[g] if totals[g] > 0 else np.nan
        row.stats[g] = GroupStatistics(n=n, pct=pct)
    return row


def summarize_continuous(
    records: pd.DataFrame,
    group_var: str,
    variable: ContinuousVariable,
    groups: Sequence[Any] | None = None,
    total_label: str | None = None,
) -> list[SummaryRow]:
    """
    Describe a numeric variable per group, ignoring missing values.

    Always returns four rows (n, mean with SD, median, min-max range).
    A group without observations gets n = 0 and NaN for the rest.
    """
    values = pd.to_numeric(_require_column(records, variable.name), errors="coerce")
    masks = group_masks(records, group_var, groups, total_label)
    labels = CONFIG.get("analysis.continuous_labels", {})
    category = variable.display_label

    def _row(key: str, default: str) -> SummaryRow:
        return SummaryRow(
            variable=variable.name,
            kind="continuous",
            category=category,
            label=labels.get(key, default),
        )

    n_row = _row("n", "n")
    mean_row = _row("mean_sd", "Mean (SD)")
    median_row = _row("median", "Median")
    range_row = _row("range", "Min - Max")

    for g, mask in masks.items():
        clean = values[mask].dropna()
        n = len(clean)
        n_row.stats[g] = GroupStatistics(n=n)
        if n == 0:
            mean_row.stats[g] = GroupStatistics()
            median_row.stats[g] = GroupStatistics()
            range_row.stats[g] = GroupStatistics()
            continue
        sd = float(clean.std(ddof=1)) if n > 1 else np.nan
        mean_row.stats[g] = GroupStatistics(mean=float(clean.mean()), sd=sd)
        median_row.stats[g] = GroupStatistics(median=float(clean.median()))
        range_row.stats[g] = GroupStatistics(min=float(clean.min()), max=float(clean.max()))

    return [n_row, mean_row, median_row, range_row]


def clopper_pearson(successes: int, total: int, confidence: float | None = None) -> Interval:
    """
    Exact two-sided binomial confidence interval, on the percent scale.

    Uses the F-distribution form of the Clopper-Pearson bounds:

        low  = x F1 / (n - x + 1 + x F1),       F1 = F(a/2; 2x, 2(n - x + 1))
        high = (x + 1) F2 / (n - x + (x + 1) F2), F2 = F(1 - a/2; 2(x + 1), 2(n - x))

    Args:
        successes: Number of events (x).
        total: Number of trials (n).
        confidence: Confidence level, defaults to ``analysis.confidence_level``.

    Returns:
        Interval(low, high) in percent. ``low`` is 0 when x == 0 and
        ``high`` is 100 when x == n. Both are ``UNDEFINED`` when n == 0.

    Raises:
        ValueError: For negative counts or successes > total.
    """
    alpha = 1 - resolve_confidence(confidence)
    x, n = int(successes), int(total)
    if x < 0 or n < 0 or x > n:
        raise ValueError(f"invalid binomial counts: successes={successes}, total={total}")
    if n == 0:
        return Interval(UNDEFINED, UNDEFINED)

    if x == 0:
        low = 0.0
    else:
        f_low = stats.f.ppf(alpha / 2, 2 * x, 2 * (n - x + 1))
        low = x * f_low / (n - x + 1 + x * f_low)

    if x == n:
        high = 1.0
    else:
        f_high = stats.f.ppf(1 - alpha / 2, 2 * (x + 1), 2 * (n - x))
        high = (x + 1) * f_high / (n - x + (x + 1) * f_high)

    return Interval(float(low) * 100, float(high) * 100)


def odds_ratio_ci(
    n_resp_a: int,
    n_total_a: int,
    n_resp_b: int,
    n_total_b: int,
    confidence: float | None = None,
) -> OddsRatio:
    """
    Odds ratio of group a versus group b with a log-scale Wald interval.

    The variance of log(OR) is the sum of reciprocals of the four cells
    (respondents and non-respondents in each group).

    Returns:
        OddsRatio(estimate, low, high). The estimate is ``UNDEFINED`` when an
        odds denominator is zero (no non-respondents in group a, or no
        respondents in group b). The interval is ``UNDEFINED`` whenever any
        of the four cells is zero, so an estimate of 0 has no interval.

    Raises:
        ValueError: For negative counts or respondents exceeding the total.
    """
    z = stats.norm.ppf(1 - (1 - resolve_confidence(confidence)) / 2)
    for resp, total in ((n_resp_a, n_total_a), (n_resp_b, n_total_b)):
        if resp < 0 or total < 0 or resp > total:
            raise ValueError(f"invalid response counts: responders={resp}, total={total}")

    a, b = int(n_resp_a), int(n_total_a) - int(n_resp_a)
    c, d = int(n_resp_b), int(n_total_b) - int(n_resp_b)

    if b == 0 or c == 0:
        return OddsRatio(UNDEFINED, UNDEFINED, UNDEFINED)

    estimate = (a * d) / (b * c)
    if a == 0 or d == 0:
        return OddsRatio(estimate, UNDEFINED, UNDEFINED)

    se = math.sqrt(1 / a + 1 / b + 1 / c + 1 / d)
    log_or = math.log(estimate)
    return OddsRatio(
        estimate,
        math.exp(log_or - z * se),
        math.exp(log_or + z * se),
    )
