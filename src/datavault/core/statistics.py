"""
statistics.py
─────────────────────────────────────────────────────────────────────────────
Descriptive statistics, Pearson correlation and linear trend over the rows of
a dataset. Every function reads rows and returns fresh objects; nothing here
mutates or caches the dataset.

  describe            → count, mean, median, population std, quartiles, IQR
                        outliers, coefficient of variation
  correlation_matrix  → symmetric Pearson matrix, `None` where not computable
  significant_correlations → |r| > 0.3 pairs, strongest first
  linear_trend        → OLS over the sorted series index, with a 3-step
                        forecast and a decaying confidence score
─────────────────────────────────────────────────────────────────────────────
"""

import math
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from datavault.core.type_inference import is_missing, parse_date, to_number
from datavault.models import (
    ColumnSummary,
    CorrelationEntry,
    CorrelationMatrix,
    ForecastPoint,
    TrendModel,
)
from datavault.utils.exceptions import InsufficientDataError, StatisticsUnavailable
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

SIGNIFICANT_CORRELATION = 0.3
FORECAST_STEPS = 3

DATE_LIKE = re.compile(r"\d{4}[-/]\d{1,2}[-/]\d{1,2}")


# ── helpers ───────────────────────────────────────────────────────────────────
def numeric_values(rows: Sequence[dict], column: str) -> List[float]:
    """Numeric cells of a column in row order; everything else is dropped."""
    values = []
    for row in rows:
        number = to_number(row.get(column))
        if number is None or not math.isfinite(number):
            continue
        values.append(float(number))
    return values


def quartiles(sorted_values: np.ndarray) -> Tuple[float, float]:
    n = len(sorted_values)
    q1 = float(sorted_values[math.floor(n * 0.25)])
    q3 = float(sorted_values[math.floor(n * 0.75)])
    return q1, q3


def median(sorted_values: np.ndarray) -> float:
    n = len(sorted_values)
    if n % 2 == 0:
        return float((sorted_values[n // 2 - 1] + sorted_values[n // 2]) / 2)
    return float(sorted_values[n // 2])


def outlier_fences(values: Sequence[float]) -> Tuple[float, float]:
    """Tukey fences Q1 - 1.5·IQR and Q3 + 1.5·IQR."""
    q1, q3 = quartiles(np.sort(np.asarray(values, dtype=float)))
    iqr = q3 - q1
    return q1 - 1.5 * iqr, q3 + 1.5 * iqr


def find_outliers(values: Sequence[float]) -> List[float]:
    if not values:
        return []
    lower, upper = outlier_fences(values)
    return [v for v in values if v < lower or v > upper]


# ── 1. DESCRIPTIVE STATISTICS ─────────────────────────────────────────────────
def summarize(column: str, values: Sequence[float]) -> ColumnSummary:
    """
    Summary of an already-extracted numeric sequence.
    Raises StatisticsUnavailable when the sequence is empty.
    """
    if not values:
        raise StatisticsUnavailable(column)

    arr = np.asarray(values, dtype=float)
    n = len(arr)
    mean = float(arr.sum() / n)
    std_dev = float(math.sqrt(((arr - mean) ** 2).sum() / n))
    ordered = np.sort(arr)
    q1, q3 = quartiles(ordered)
    iqr = q3 - q1
    lower, upper = q1 - 1.5 * iqr, q3 + 1.5 * iqr
    lo, hi = float(ordered[0]), float(ordered[-1])

    return ColumnSummary(
        column=column,
        count=n,
        mean=mean,
        median=median(ordered),
        std_dev=std_dev,
        min=lo,
        max=hi,
        range=hi - lo,
        coefficient_of_variation=(std_dev / mean * 100) if mean != 0 else None,
        q1=q1,
        q3=q3,
        iqr=iqr,
        lower_fence=lower,
        upper_fence=upper,
        outliers=[float(v) for v in values if v < lower or v > upper],
    )


def describe(rows: Sequence[dict], column: str) -> Optional[ColumnSummary]:
    """Summary of one column, or None when it holds no numeric values."""
    try:
        return summarize(column, numeric_values(rows, column))
    except StatisticsUnavailable as e:
        logger.info(e.message)
        return None


def describe_columns(rows: Sequence[dict], columns: Sequence[str]) -> Dict[str, ColumnSummary]:
    """Summaries keyed by column; columns without numeric values are omitted."""
    logger.info(f"Describing {len(columns)} column(s).")
    summaries = {}
    for column in columns:
        summary = describe(rows, column)
        if summary is not None:
            summaries[column] = summary
    return summaries


# ── 2. CORRELATION ────────────────────────────────────────────────────────────
def pearson(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson r from raw sums. A zero (or degenerate) denominator yields 0.
    """
    n = len(x)
    if n == 0 or n != len(y):
        return 0.0
    xa = np.asarray(x, dtype=float)
    ya = np.asarray(y, dtype=float)
    sum_x, sum_y = xa.sum(), ya.sum()
    sum_xy = (xa * ya).sum()
    sum_xx = (xa * xa).sum()
    sum_yy = (ya * ya).sum()

    denominator_sq = (n * sum_xx - sum_x ** 2) * (n * sum_yy - sum_y ** 2)
    if not denominator_sq > 0:
        return 0.0
    r = float((n * sum_xy - sum_x * sum_y) / math.sqrt(denominator_sq))
    if math.isnan(r):
        return 0.0
    return max(-1.0, min(1.0, r))


def correlation_matrix(rows: Sequence[dict], columns: Sequence[str]) -> CorrelationMatrix:
    """
    Pairwise Pearson r over the selected columns. Each column is filtered to
    its own numeric cells; pairs whose filtered lengths differ are left as
    None. The diagonal is fixed at 1.
    """
    extracted = {c: numeric_values(rows, c) for c in columns}
    usable = [c for c in columns if extracted[c]]
    dropped = [c for c in columns if not extracted[c]]
    if dropped:
        logger.info(f"Columns without numeric values left out of the matrix: {dropped}")

    size = len(usable)
    values: List[List[Optional[float]]] = [[None] * size for _ in range(size)]
    for i in range(size):
        values[i][i] = 1.0
        for j in range(i + 1, size):
            xs, ys = extracted[usable[i]], extracted[usable[j]]
            r = pearson(xs, ys) if len(xs) == len(ys) else None
            values[i][j] = values[j][i] = r

    return CorrelationMatrix(columns=usable, values=values)


def strength_label(r: float) -> str:
    magnitude = abs(r)
    if magnitude > 0.7:
        return "Strong"
    if magnitude > 0.5:
        return "Moderate"
    return "Weak"


def significant_correlations(rows: Sequence[dict], columns: Sequence[str]) -> List[CorrelationEntry]:
    """Off-diagonal pairs with |r| > 0.3, strongest first."""
    matrix = correlation_matrix(rows, columns)
    entries = []
    for i, column_a in enumerate(matrix.columns):
        for j in range(i + 1, len(matrix.columns)):
            r = matrix.values[i][j]
            if r is None or abs(r) <= SIGNIFICANT_CORRELATION:
                continue
            entries.append(CorrelationEntry(
                column_a=column_a,
                column_b=matrix.columns[j],
                pearson_r=r,
                strength=strength_label(r),
            ))
    entries.sort(key=lambda e: abs(e.pearson_r), reverse=True)
    return entries


# ── 3. LINEAR TREND ───────────────────────────────────────────────────────────
def _time_key(value: Any, position: int) -> Optional[float]:
    """Date-like text sorts by timestamp, numbers by value, the rest by row position."""
    if DATE_LIKE.search(str(value)):
        ts = parse_date(value)
        return ts.timestamp() if ts is not None else None
    number = to_number(value)
    if number is not None:
        return float(number)
    return float(position)


def trend_label(slope: float, relative_slope: Optional[float]) -> str:
    """A missing relative slope means a zero-mean series that still moves."""
    if relative_slope is not None and relative_slope < 0.5:
        return "Stable"
    direction = "Increasing" if slope > 0 else "Decreasing"
    return f"Strongly {direction}" if relative_slope is None or relative_slope > 5 else direction


def model_quality(r_squared: float) -> str:
    if r_squared > 0.8:
        return "Excellent"
    if r_squared > 0.6:
        return "Good"
    if r_squared > 0.4:
        return "Fair"
    return "Poor"


def volatility_label(ratio: float) -> str:
    if ratio > 0.3:
        return "High variation detected"
    if ratio > 0.15:
        return "Moderate variation"
    return "Low variation (stable data)"


def linear_trend(rows: Sequence[dict], time_column: str, value_column: str) -> TrendModel:
    """
    Fit y = slope·i + intercept where i is the position in the time-sorted
    series, not the raw time value.

    Raises:
        InsufficientDataError: If fewer than 2 valid points remain.
    """
    logger.info(f"Fitting linear trend: {time_column} → {value_column}")

    series = []
    for position, row in enumerate(rows):
        raw_time, raw_value = row.get(time_column), row.get(value_column)
        if is_missing(raw_time) or is_missing(raw_value):
            continue
        value = to_number(raw_value)
        if value is None or not math.isfinite(value):
            continue
        key = _time_key(raw_time, position)
        if key is None:
            continue
        series.append((key, raw_time, float(value)))

    if len(series) < 2:
        raise InsufficientDataError("Need at least 2 valid data points for trend analysis.")

    series.sort(key=lambda item: item[0])

    n = len(series)
    x = np.arange(n, dtype=float)
    y = np.array([item[2] for item in series], dtype=float)
    sum_x, sum_y = x.sum(), y.sum()
    sum_xy = (x * y).sum()
    sum_xx = (x * x).sum()

    slope = float((n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x ** 2))
    intercept = float((sum_y - slope * sum_x) / n)

    mean_y = float(sum_y / n)
    relative_slope: Optional[float]
    if mean_y != 0:
        relative_slope = abs(slope) / mean_y * 100
    else:
        # unbounded against a zero mean; JSON has no infinity
        relative_slope = 0.0 if slope == 0 else None

    predictions = slope * x + intercept
    ss_res = float(((y - predictions) ** 2).sum())
    ss_tot = float(((y - mean_y) ** 2).sum())
    if ss_tot == 0:
        r_squared = 1.0 if math.isclose(ss_res, 0.0, abs_tol=1e-12) else 0.0
    else:
        r_squared = max(0.0, 1 - ss_res / ss_tot)

    forecast = [
        ForecastPoint(
            step=step,
            predicted_value=slope * (n + step - 1) + intercept,
            confidence=max(0.0, r_squared * 100 - step * 10),
        )
        for step in range(1, FORECAST_STEPS + 1)
    ]

    volatility = float(math.sqrt(ss_tot / n))
    volatility_ratio = volatility / mean_y if mean_y != 0 else None

    return TrendModel(
        time_column=time_column,
        value_column=value_column,
        points=n,
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        relative_slope=relative_slope,
        trend=trend_label(slope, relative_slope),
        model_quality=model_quality(r_squared),
        min_value=float(y.min()),
        max_value=float(y.max()),
        volatility=volatility,
        volatility_percent=volatility_ratio * 100 if volatility_ratio is not None else None,
        volatility_label=volatility_label(volatility_ratio) if volatility_ratio is not None and volatility > 0 else None,
        start_time=str(series[0][1]),
        end_time=str(series[-1][1]),
        forecast=forecast,
    )
