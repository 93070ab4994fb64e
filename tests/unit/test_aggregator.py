"""
🧪 Unit Tests for the Aggregator
File: tests/unit/test_aggregator.py

- aggregate: dispatch by variable type, declaration order, total pseudo-group
- summary_to_frame / summary_to_long: wide and long summary datasets
- summarize_response / response_to_frame: event rates and odds ratios by subgroup

Run with: pytest tests/unit/test_aggregator.py -v
"""

import numpy as np
import pandas as pd
import pytest

from summary_tables.aggregator import (
    aggregate,
    resolve_comparison,
    response_to_frame,
    summarize_response,
    summary_to_frame,
    summary_to_long,
)
from summary_tables.errors import UNDEFINED, UnknownReference, UnknownVariableType
from summary_tables.variables import CategoricalVariable, ContinuousVariable, coerce_variable

pytestmark = pytest.mark.unit


class TestCoerceVariable:
    def test_metadata_dict(self, var_meta):
        var = coerce_variable("age", var_meta)
        assert isinstance(var, ContinuousVariable)
        assert var.display_label == "Age (years)"

    def test_name_meta_pair(self):
        var = coerce_variable(("sex", {"type": "categorical", "levels": ["F", "M"]}))
        assert isinstance(var, CategoricalVariable)
        assert var.levels == ("F", "M")

    def test_descriptor_passes_through(self):
        var = ContinuousVariable("x")
        assert coerce_variable(var) is var

    @pytest.mark.parametrize("meta", [None, {}, {"type": "date"}])
    def test_untyped_variable_rejected(self, meta):
        with pytest.raises(UnknownVariableType):
            coerce_variable("x", {"x": meta} if meta is not None else None)


class TestAggregate:
    def test_declaration_order(self, trial_records, var_meta):
        rows = aggregate(trial_records, "arm", ["age", "sex"], var_meta=var_meta)
        assert [r.kind for r in rows[:4]] == ["continuous"] * 4
        assert {r.kind for r in rows[4:]} == {"categorical"}

    def test_groups_follow_first_appearance(self, trial_records, var_meta):
        rows = aggregate(trial_records, "arm", ["age"], var_meta=var_meta)
        assert rows[0].groups == ["Placebo", "Active"]

    def test_total_pseudo_group(self, trial_records, var_meta):
        rows = aggregate(trial_records, "arm", ["age"], total_label="Total", var_meta=var_meta)
        assert rows[0].groups == ["Placebo", "Active", "Total"]
        assert rows[0].stats["Total"].n == 20

    def test_unknown_type_raises(self, trial_records):
        with pytest.raises(UnknownVariableType):
            aggregate(trial_records, "arm", ["age"], var_meta={"age": {"label": "Age"}})

    def test_unknown_group_column(self, trial_records, var_meta):
        with pytest.raises(UnknownReference):
            aggregate(trial_records, "treatment", ["age"], var_meta=var_meta)

    def test_unknown_variable_column(self, trial_records):
        with pytest.raises(UnknownReference):
            aggregate(trial_records, "arm", [ContinuousVariable("height")])


class TestSummaryFrames:
    def test_wide_columns_group_major(self, trial_records, var_meta):
        frame = summary_to_frame(aggregate(trial_records, "arm", ["sex"], var_meta=var_meta))
        assert list(frame.columns[:4]) == ["variable", "kind", "category", "label"]
        assert list(frame.columns[4:11]) == [
            "n_Placebo", "pct_Placebo", "mean_Placebo", "sd_Placebo",
            "median_Placebo", "min_Placebo", "max_Placebo",
        ]
        assert frame["n_Placebo"].sum() == 10
        assert frame["mean_Placebo"].isna().all()

    def test_long_form_drops_missing(self):
        df = pd.DataFrame({"g": ["A", "A"], "x": [1.0, 3.0]})
        long = summary_to_long(aggregate(df, "g", [ContinuousVariable("x")]))
        assert set(long["statistic"]) == {"n", "mean", "sd", "median", "min", "max"}
        mean = long[(long["statistic"] == "mean")]["value"].iloc[0]
        assert mean == pytest.approx(2.0)


class TestResolveComparison:
    def test_defaults(self):
        assert resolve_comparison(["P", "D1", "D2"]) == ("P", "D1")

    def test_explicit(self):
        assert resolve_comparison(["P", "D1", "D2"], "D1", "D2") == ("D1", "D2")

    def test_unknown_group(self):
        with pytest.raises(UnknownReference):
            resolve_comparison(["P", "D1"], comparator="D9")


class TestSummarizeResponse:
    def test_overall_rates_and_odds_ratio(self, trial_records):
        overall = summarize_response(trial_records, "arm", "response")[0]
        placebo, active = overall.groups["Placebo"], overall.groups["Active"]
        assert (placebo.events, placebo.total) == (3, 10)
        assert (active.events, active.total) == (7, 10)
        assert placebo.pct == pytest.approx(30.0)
        assert placebo.lower < 30 < placebo.upper
        assert overall.odds_ratio.estimate == pytest.approx((7 / 3) / (3 / 7))

    def test_comparator_vs_reference(self, trial_records):
        overall = summarize_response(
            trial_records, "arm", "response", reference="Active", comparator="Placebo"
        )[0]
        assert overall.odds_ratio.estimate == pytest.approx((3 / 7) / (7 / 3))

    def test_strata_rows(self, trial_records, var_meta):
        summaries = summarize_response(
            trial_records, "arm", "response", strata=["region"], var_meta=var_meta
        )
        assert [(s.stratum, s.subgroup) for s in summaries] == [
            ("Overall", "Overall"), ("Region", "EU"), ("Region", "US"),
        ]
        for g in ("Placebo", "Active"):
            assert sum(s.groups[g].total for s in summaries[1:]) == 10

    def test_missing_response_excluded(self):
        df = pd.DataFrame({"arm": ["A", "A", "A", "B"], "resp": ["Y", None, "N", "Y"]})
        overall = summarize_response(df, "arm", "resp")[0]
        assert (overall.groups["A"].events, overall.groups["A"].total) == (1, 2)

    def test_custom_event_values(self):
        df = pd.DataFrame({"arm": ["A", "A", "B", "B"], "resp": ["CR", "PD", "PR", "PD"]})
        overall = summarize_response(df, "arm", "resp", event_values=["CR", "PR"])[0]
        assert overall.groups["A"].events == 1
        assert overall.groups["B"].events == 1

    def test_empty_subgroup_is_undefined(self):
        df = pd.DataFrame({"arm": ["A", "B"], "resp": [1, 0], "sex": ["F", "F"]})
        summaries = summarize_response(
            df, "arm", "resp", strata=[CategoricalVariable("sex", levels=("F", "M"))]
        )
        male = summaries[-1]
        assert male.subgroup == "M"
        assert male.groups["A"].total == 0
        assert male.groups["A"].pct is UNDEFINED
        assert male.groups["A"].lower is UNDEFINED
        assert not male.odds_ratio.is_defined

    def test_unknown_response_column(self, trial_records):
        with pytest.raises(UnknownReference):
            summarize_response(trial_records, "arm", "best_response")

    def test_response_frame_columns(self, trial_records):
        frame = response_to_frame(summarize_response(trial_records, "arm", "response"))
        assert list(frame.columns) == [
            "stratum", "subgroup",
            "events_Placebo", "total_Placebo", "pct_Placebo", "lower_Placebo", "upper_Placebo",
            "events_Active", "total_Active", "pct_Active", "lower_Active", "upper_Active",
            "or", "or_lower", "or_upper",
        ]
        assert frame.loc[0, "events_Active"] == 7
        assert np.isfinite(frame.loc[0, "or"])
