from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ColumnSummary(BaseModel):
    """Descriptive statistics for one numeric column."""
    column: str
    count: int
    mean: float
    median: float
    std_dev: float
    min: float
    max: float
    range: float
    coefficient_of_variation: Optional[float] = None
    q1: float
    q3: float
    iqr: float
    lower_fence: float
    upper_fence: float
    outliers: List[float] = Field(default_factory=list)


class CorrelationMatrix(BaseModel):
    """Square Pearson matrix; a `None` cell means the pair was not computable."""
    columns: List[str]
    values: List[List[Optional[float]]]

    def get(self, column_a: str, column_b: str) -> Optional[float]:
        i = self.columns.index(column_a)
        j = self.columns.index(column_b)
        return self.values[i][j]


class CorrelationEntry(BaseModel):
    column_a: str
    column_b: str
    pearson_r: float
    strength: str

    @property
    def relationship(self) -> str:
        return f"{self.column_a} ↔ {self.column_b}"


class ForecastPoint(BaseModel):
    step: int
    predicted_value: float
    confidence: float


class TrendModel(BaseModel):
    time_column: str
    value_column: str
    points: int
    slope: float
    intercept: float
    r_squared: float
    relative_slope: Optional[float] = None
    trend: str
    model_quality: str
    min_value: float
    max_value: float
    volatility: float
    volatility_percent: Optional[float] = None
    volatility_label: Optional[str] = None
    start_time: str
    end_time: str
    forecast: List[ForecastPoint] = Field(default_factory=list)


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Anomaly(BaseModel):
    id: str
    column: str
    value: float
    expected: float
    deviation: float
    severity: Severity
    timestamp: datetime
