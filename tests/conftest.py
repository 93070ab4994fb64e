"""
🧪 Pytest Configuration for the summary table tests

- Registers the unit / integration markers
- Shared fixtures: a small two-arm trial dataset and its variable metadata
- Restores the global CONFIG after every test that changes it
"""

import copy

import numpy as np
import pandas as pd
import pytest

from config import CONFIG


@pytest.fixture(autouse=True)
def restore_config():
    """Tests may call CONFIG.update(); put the original values back afterwards."""
    saved = copy.deepcopy(CONFIG._config)
    yield
    CONFIG._config = saved


@pytest.fixture
def trial_records():
    """Two-arm trial: 10 subjects per arm, mixed categorical/continuous data."""
    rng = np.random.default_rng(2024)
    n = 20
    return pd.DataFrame({
        "arm": ["Placebo"] * 10 + ["Active"] * 10,
        "sex": rng.choice(["F", "M"], n),
        "age": rng.normal(55, 8, n).round(0),
        "weight": rng.normal(75, 12, n).round(1),
        "response": [1, 1, 1] + [0] * 7 + [1] * 7 + [0] * 3,
        "region": ["EU", "US"] * 10,
    })


@pytest.fixture
def var_meta():
    return {
        "sex": {"type": "Categorical", "label": "Sex", "map": {"F": "Female", "M": "Male"}},
        "age": {"type": "Continuous", "label": "Age", "unit": "years"},
        "weight": {"type": "Continuous", "label": "Weight", "unit": "kg"},
        "region": {"type": "Categorical", "label": "Region"},
    }


# ============================================================================
# 🎨 Pytest Configuration & Markers
# ============================================================================

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
