"""
🔗 Integration Tests for the Response (Event Rate) Table Pipeline
File: tests/integration/test_response_pipeline.py

Tests the flow records -> summarize_response -> TableModel -> render:
1. events/total and exact (Clopper-Pearson) intervals per arm
2. Odds ratio of comparator vs reference with a Wald interval
3. Subgroups grouped by stratum, undefined statistics rendered as missing
"""

import numpy as np
import pandas as pd
import pytest
from statsmodels.stats.contingency_tables import Table2x2
from statsmodels.stats.proportion import proportion_confint

from summary_tables import build_response_table, render

pytestmark = pytest.mark.integration


@pytest.fixture
def response_records():
    """10 subjects per arm: 3 responders on Placebo, 7 on Drug 1."""
    return pd.DataFrame({
        "TRT": ["Placebo"] * 10 + ["Drug 1"] * 10,
        "RESP": ["Y"] * 3 + ["N"] * 7 + ["Y"] * 7 + ["N"] * 3,
        "SEX": ["M", "F"] * 10,
    })


def _rate(events, total):
    low, high = proportion_confint(events, total, alpha=0.05, method="beta")
    return f"{100 * events / total:.1f} ({100 * low:.1f}, {100 * high:.1f})"


class TestResponsePipeline:
    def test_overall_row(self, response_records):
        """🔄 3/10 vs 7/10 responders"""
        grid = render(build_response_table(response_records, "TRT", "RESP"))

        assert [c.id for c in grid.columns] == [
            "Placebo:n", "Placebo:rate", "Drug 1:n", "Drug 1:rate", "or",
        ]
        assert grid.cell(0, "Placebo:n") == "3/10"
        assert grid.cell(0, "Drug 1:n") == "7/10"
        assert grid.cell(0, "Placebo:rate") == _rate(3, 10)
        assert grid.cell(0, "Drug 1:rate") == _rate(7, 10)

        table = Table2x2(np.array([[7, 3], [3, 7]]))
        low, high = table.oddsratio_confint(alpha=0.05, method="normal")
        assert table.oddsratio == pytest.approx((7 / 3) / (3 / 7))
        assert grid.cell(0, "or") == f"{table.oddsratio:.2f} ({low:.2f}, {high:.2f})"

    def test_headers(self, response_records):
        grid = render(build_response_table(response_records, "TRT", "RESP"))
        spanners, labels = grid.header_rows
        assert [(c.label, c.span) for c in spanners] == [
            ("", 1), ("Placebo", 2), ("Drug 1", 2), ("Drug 1 vs Placebo", 1),
        ]
        assert [c.label for c in labels] == [
            "Subgroup", "n/N", "% (95% CI)", "n/N", "% (95% CI)", "Odds ratio (95% CI)",
        ]

    def test_footnotes_name_interval_methods(self, response_records):
        grid = render(build_response_table(response_records, "TRT", "RESP"))
        texts = list(grid.footnotes.values())
        assert texts[0] == "Exact (Clopper-Pearson) confidence interval."
        assert texts[1].startswith("Wald confidence interval")
        assert {m.column for m in grid.marks if m.mark == "1"} == {"Placebo:rate", "Drug 1:rate"}

    def test_strata_become_row_groups(self, response_records):
        meta = {"SEX": {"type": "Categorical", "label": "Sex", "map": {"M": "Male", "F": "Female"}}}
        grid = render(
            build_response_table(response_records, "TRT", "RESP", strata=["SEX"], var_meta=meta)
        )
        assert [(r.kind, r.stub, r.indent) for r in grid.body] == [
            ("data", "Overall", 0),
            ("group", "Sex", 0),
            ("data", "Male", 1),
            ("data", "Female", 1),
        ]
        assert grid.cell(1, "Placebo:n") == "2/5"
        assert grid.cell(2, "Placebo:n") == "1/5"

    def test_undefined_statistics_render_as_missing(self):
        df = pd.DataFrame({
            "TRT": ["Placebo"] * 6 + ["Drug 1"] * 4,
            "RESP": [1, 0, 0, 0, 0, 0, 1, 1, 0, 0],
            "SITE": ["01"] * 6 + ["01", "01", "02", "02"],
        })
        model = build_response_table(df, "TRT", "RESP", strata=["SITE"])
        grid = render(model.sub_missing("NE"))

        assert grid.cell(0, "or").startswith("5.00 (")
        # every Drug 1 subject at site 01 responded
        assert grid.cell(1, "or") == "NE"
        assert grid.cell(1, "Drug 1:rate").endswith(", 100.0)")
        # site 02 has no placebo subjects
        assert grid.cell(2, "Placebo:n") == "0/0"
        assert grid.cell(2, "Placebo:rate") == "NE"
        assert grid.cell(2, "Drug 1:rate").startswith("0.0 (0.0, ")

    def test_zero_odds_ratio_without_interval(self):
        """🔄 Drug 0/5 vs Placebo 1/5 among males: OR is 0 and has no interval"""
        df = pd.DataFrame({
            "TRT": ["Placebo"] * 10 + ["Drug 1"] * 10,
            "RESP": [1, 0, 0, 0, 0] + [1, 1, 0, 0, 0] + [0] * 5 + [1, 1, 1, 1, 0],
            "SEX": (["M"] * 5 + ["F"] * 5) * 2,
        })
        meta = {"SEX": {"type": "Categorical", "label": "Sex", "map": {"M": "Male", "F": "Female"}}}
        grid = render(build_response_table(df, "TRT", "RESP", strata=["SEX"], var_meta=meta))

        table = Table2x2(np.array([[4, 6], [3, 7]]))
        low, high = table.oddsratio_confint(alpha=0.05, method="normal")
        assert grid.cell(0, "or") == f"{table.oddsratio:.2f} ({low:.2f}, {high:.2f})"
        assert grid.cell(1, "Drug 1:n") == "0/5"
        assert grid.cell(1, "or") == "0.00"
        assert grid.cell(2, "or").startswith("6.00 (")

    def test_zero_odds_ratio_in_every_row(self):
        """No row has an interval: the estimate column still renders and keeps its label."""
        df = pd.DataFrame({
            "TRT": ["Placebo"] * 10 + ["Drug 1"] * 10,
            "RESP": [1] * 3 + [0] * 7 + [0] * 10,
        })
        grid = render(build_response_table(df, "TRT", "RESP"))
        assert grid.cell(0, "or") == "0.00"
        assert grid.header_rows[-1][-1].label == "Odds ratio (95% CI)"
        assert grid.header_rows[0][-1].label == "Drug 1 vs Placebo"

    def test_explicit_reference_and_confidence(self, response_records):
        model = build_response_table(
            response_records, "TRT", "RESP", reference="Drug 1", comparator="Placebo", confidence=0.9
        )
        grid = render(model)
        assert grid.header_rows[0][-1].label == "Placebo vs Drug 1"
        assert grid.header_rows[-1][-1].label == "Odds ratio (90% CI)"
        estimate = float(grid.cell(0, "or").split(" ")[0])
        assert estimate == pytest.approx((3 / 7) / (7 / 3), abs=0.005)

    def test_render_is_idempotent(self, response_records):
        model = build_response_table(response_records, "TRT", "RESP", strata=["SEX"])
        assert render(model) == render(model)
