import math

import pytest

from datavault.core.anomaly import detect_anomaly, severity_for
from datavault.core.ingestion import ingest_file
from datavault.core.statistics import (
    correlation_matrix,
    describe,
    describe_columns,
    linear_trend,
    numeric_values,
    pearson,
    significant_correlations,
    summarize,
)
from datavault.models import Severity
from datavault.utils.exceptions import InsufficientDataError, StatisticsUnavailable


class ScriptedRandom:
    """Returns preset values from random() so anomaly draws are predictable."""
    def __init__(self, *values):
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def _rows(**columns):
    size = len(next(iter(columns.values())))
    return [{name: values[i] for name, values in columns.items()} for i in range(size)]

# --- Tests for Descriptive Statistics ---

def test_describe_with_outlier():
    """Test quartiles by index rule, population std dev and IQR outliers."""
    summary = describe(_rows(v=[1, 2, 3, 4, 100]), "v")
    assert summary.count == 5
    assert summary.mean == 22
    assert summary.median == 3
    assert summary.std_dev == pytest.approx(math.sqrt(1522))
    assert summary.q1 == 2
    assert summary.q3 == 4
    assert summary.iqr == 2
    assert summary.lower_fence == -1
    assert summary.upper_fence == 7
    assert summary.outliers == [100]
    assert summary.min == 1 and summary.max == 100 and summary.range == 99

def test_describe_even_count_median():
    summary = summarize("v", [4, 1, 3, 2])
    assert summary.median == 2.5
    assert summary.q1 == 2
    assert summary.q3 == 4

def test_describe_skips_non_numeric_cells():
    """Test that text and empty cells are dropped before summarising."""
    rows = _rows(v=["10", "n/a", "", 30, None])
    assert numeric_values(rows, "v") == [10.0, 30.0]
    assert describe(rows, "v").mean == 20

def test_describe_no_numeric_values():
    """Test that a textual column has no summary."""
    rows = _rows(name=["a", "b"])
    assert describe(rows, "name") is None
    with pytest.raises(StatisticsUnavailable):
        summarize("name", [])

def test_describe_skips_out_of_range_integers():
    """Test that a cell too large for a float is skipped rather than crashing."""
    dataset = ingest_file(b"a\n" + b"9" * 400 + b"\n5\n", "big.csv")
    summary = describe(dataset.rows, "a")
    assert summary.count == 1
    assert summary.mean == 5

def test_coefficient_of_variation_zero_mean():
    assert summarize("v", [-1, 1]).coefficient_of_variation is None
    assert summarize("v", [2, 4]).coefficient_of_variation == pytest.approx(100 / 3)

def test_describe_columns_omits_empty():
    rows = _rows(a=[1, 2], b=["x", "y"])
    assert list(describe_columns(rows, ["a", "b"])) == ["a"]

# --- Tests for Correlation ---

def test_pearson_perfect_and_inverse():
    assert pearson([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)
    assert pearson([1, 2, 3], [3, 2, 1]) == pytest.approx(-1.0)

def test_pearson_zero_variance_is_zero():
    assert pearson([1, 1, 1], [1, 2, 3]) == 0.0

def test_correlation_matrix_shape():
    """Test that the matrix is symmetric with a unit diagonal."""
    rows = _rows(a=[1, 2, 3, 4], b=[2, 4, 5, 9], c=[9, 7, 4, 1])
    matrix = correlation_matrix(rows, ["a", "b", "c"])
    assert matrix.columns == ["a", "b", "c"]
    for i in range(3):
        assert matrix.values[i][i] == 1.0
        for j in range(3):
            assert matrix.values[i][j] == matrix.values[j][i]
    assert matrix.get("a", "c") < 0

def test_correlation_matrix_length_mismatch():
    """Test that columns with different numeric counts are not paired."""
    rows = _rows(a=[1, 2, 3], b=[1, "", 3], name=["x", "y", "z"])
    matrix = correlation_matrix(rows, ["a", "b", "name"])
    assert matrix.columns == ["a", "b"]
    assert matrix.get("a", "b") is None

def test_significant_correlations_sorted():
    rows = _rows(a=[1, 2, 3, 4, 5], b=[2, 4, 6, 8, 10], c=[5, 3, 4, 1, 2], d=[1, 1, 2, 1, 1])
    entries = significant_correlations(rows, ["a", "b", "c", "d"])
    assert entries[0].relationship == "a ↔ b"
    assert entries[0].strength == "Strong"
    assert all(abs(e.pearson_r) > 0.3 for e in entries)
    magnitudes = [abs(e.pearson_r) for e in entries]
    assert magnitudes == sorted(magnitudes, reverse=True)

# --- Tests for Linear Trend ---

def test_linear_trend_even_series():
    """Test slope, intercept, R² and forecast on a perfect line."""
    model = linear_trend(_rows(t=[1, 2, 3, 4], v=[10, 20, 30, 40]), "t", "v")
    assert model.slope == pytest.approx(10)
    assert model.intercept == pytest.approx(10)
    assert model.r_squared == pytest.approx(1)
    assert model.forecast[0].predicted_value == pytest.approx(50)
    assert model.forecast[0].confidence == pytest.approx(90)
    assert model.forecast[2].confidence == pytest.approx(70)
    assert model.trend == "Strongly Increasing"
    assert model.model_quality == "Excellent"

def test_linear_trend_sorts_by_date():
    """Test that rows are ordered by their date before fitting."""
    rows = _rows(day=["2024-01-03", "2024-01-01", "2024-01-02"], v=[30, 10, 20])
    model = linear_trend(rows, "day", "v")
    assert model.slope == pytest.approx(10)
    assert model.start_time == "2024-01-01"
    assert model.end_time == "2024-01-03"

def test_linear_trend_uses_index_not_time_gap():
    rows = _rows(t=[1, 100, 1000], v=[5, 10, 15])
    assert linear_trend(rows, "t", "v").slope == pytest.approx(5)

def test_linear_trend_flat_series():
    model = linear_trend(_rows(t=[1, 2, 3], v=[7, 7, 7]), "t", "v")
    assert model.slope == 0
    assert model.r_squared == 1.0
    assert model.trend == "Stable"

def test_linear_trend_r_squared_never_negative():
    model = linear_trend(_rows(t=[1, 2, 3, 4], v=[1, 9, 1, 9]), "t", "v")
    assert 0 <= model.r_squared < 0.5
    assert all(f.confidence >= 0 for f in model.forecast)

def test_linear_trend_two_points():
    """Test that two points fit exactly with slope equal to their difference."""
    model = linear_trend(_rows(t=[1, 2], v=[3, 7]), "t", "v")
    assert model.points == 2
    assert model.slope == pytest.approx(4)
    assert model.intercept == pytest.approx(3)
    assert model.r_squared == pytest.approx(1)
    assert model.forecast[0].predicted_value == pytest.approx(11)

def test_linear_trend_zero_mean_series():
    """Test that a moving series around zero has no relative slope but a strong label."""
    model = linear_trend(_rows(t=[1, 2], v=[-1, 1]), "t", "v")
    assert model.slope == pytest.approx(2)
    assert model.r_squared == pytest.approx(1)
    assert model.relative_slope is None
    assert model.trend == "Strongly Increasing"
    assert model.volatility_percent is None
    assert math.isfinite(model.volatility)

def test_linear_trend_keeps_zero_cells():
    """Test that zero in the time or value column is a present value."""
    model = linear_trend(_rows(t=[0, 1, 2], v=[0, 5, 10]), "t", "v")
    assert model.points == 3
    assert model.min_value == 0

def test_linear_trend_skips_out_of_range_integers():
    rows = _rows(t=[1, 2, 3], v=["9" * 400, "5", "7"])
    model = linear_trend(rows, "t", "v")
    assert model.points == 2
    assert model.slope == pytest.approx(2)

def test_linear_trend_insufficient_data():
    """Test that fewer than two valid points is rejected."""
    with pytest.raises(InsufficientDataError):
        linear_trend(_rows(t=[1, 2], v=[5, "x"]), "t", "v")

# --- Tests for Anomaly Detection ---

def test_anomaly_requires_eleven_samples():
    assert detect_anomaly("v", list(range(10)), rng=ScriptedRandom(0.5, 0.9)) is None

def test_anomaly_requires_variance():
    assert detect_anomaly("v", [5.0] * 20, rng=ScriptedRandom(0.5, 0.9)) is None

def test_anomaly_high_side():
    """Test the candidate formula with factor 3 on the positive side."""
    values = [float(v) for v in range(1, 21)]
    mean = 10.5
    std = math.sqrt(sum((v - mean) ** 2 for v in values) / 20)
    anomaly = detect_anomaly("v", values, rng=ScriptedRandom(0.5, 0.9))
    assert anomaly.value == pytest.approx(mean + 3 * std)
    assert anomaly.expected == pytest.approx(mean)
    assert anomaly.deviation == pytest.approx(3)
    assert anomaly.severity == Severity.MEDIUM

def test_anomaly_is_clamped():
    """Test that the candidate never leaves half a range beyond the data."""
    values = [float(v) for v in range(1, 21)]
    anomaly = detect_anomaly("v", values, rng=ScriptedRandom(0.999, 0.9))
    assert anomaly.value == pytest.approx(29.5)

def test_anomaly_low_side():
    values = [float(v) for v in range(1, 21)]
    anomaly = detect_anomaly("v", values, rng=ScriptedRandom(0.0, 0.1))
    assert anomaly.value < 10.5
    assert anomaly.deviation == pytest.approx(2)
    assert anomaly.severity == Severity.LOW

def test_severity_thresholds():
    assert severity_for(3.6) == Severity.HIGH
    assert severity_for(3.5) == Severity.MEDIUM
    assert severity_for(2.5) == Severity.LOW
