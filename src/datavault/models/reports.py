from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class ReportKind(str, Enum):
    EXECUTIVE_SUMMARY = "executive_summary"
    DATA_QUALITY = "data_quality_report"
    TREND_ANALYSIS = "trend_analysis"
    CUSTOM = "custom_report"


class ReportStatus(str, Enum):
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


class ColumnAverage(BaseModel):
    column: str
    average: float


class DataOverview(BaseModel):
    total_rows: int
    total_columns: int
    numeric_count: int


class ExecutiveSummaryContent(BaseModel):
    kind: Literal["executive_summary"] = "executive_summary"
    metrics: List[ColumnAverage]
    data_overview: DataOverview
    completeness: float
    recommendations: List[str]


class OutlierCount(BaseModel):
    column: str
    outliers: int
    percentage: float


class DataQualityContent(BaseModel):
    kind: Literal["data_quality_report"] = "data_quality_report"
    completeness: float
    missing_values: int
    total_cells: int
    outlier_analysis: List[OutlierCount]
    quality_score: float
    quality_label: str


class TrendAnalysisContent(BaseModel):
    kind: Literal["trend_analysis"] = "trend_analysis"
    time_columns: List[str]
    numeric_columns: List[str]
    potential_relationships: int
    analysis_type: Literal["time-series", "cross-sectional"]


class CorrelationFinding(BaseModel):
    relationship: str
    correlation: float
    strength: str


class CustomReportContent(BaseModel):
    kind: Literal["custom_report"] = "custom_report"
    correlations: List[CorrelationFinding]
    significant_count: int
    metrics: List[str]
    analysis_capabilities: List[str]


ReportContent = Annotated[
    Union[ExecutiveSummaryContent, DataQualityContent, TrendAnalysisContent, CustomReportContent],
    Field(discriminator="kind"),
]


class ReportResult(BaseModel):
    """What the synthesizer produces for one report kind."""
    summary_text: str
    key_insights: List[str]
    content: ReportContent


class Report(BaseModel):
    id: str
    title: str
    kind: ReportKind
    dataset_name: str
    created_at: datetime
    summary_text: str = ""
    key_insights: List[str] = Field(default_factory=list)
    content: Optional[ReportContent] = None
    status: ReportStatus = ReportStatus.GENERATING
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != ReportStatus.GENERATING
