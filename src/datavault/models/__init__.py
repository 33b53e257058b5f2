from .dataset import Column, ColumnType, Dataset, DatasetMetadata, SourceFormat
from .analysis import (
    Anomaly,
    ColumnSummary,
    CorrelationEntry,
    CorrelationMatrix,
    ForecastPoint,
    Severity,
    TrendModel,
)
from .reports import (
    ColumnAverage,
    CorrelationFinding,
    CustomReportContent,
    DataOverview,
    DataQualityContent,
    ExecutiveSummaryContent,
    OutlierCount,
    Report,
    ReportContent,
    ReportKind,
    ReportResult,
    ReportStatus,
    TrendAnalysisContent,
)
from .chat import (
    AssistantResponse,
    ChartKind,
    ChatMessage,
    DataPoint,
    QueryContext,
    Role,
    VisualizationConfig,
)
