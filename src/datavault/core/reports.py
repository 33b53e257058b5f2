"""
reports.py
─────────────────────────────────────────────────────────────────────────────
Canned report synthesis plus the generating → completed/error lifecycle.

Report kinds
  executive_summary    → counts, per-column means, completeness
  data_quality_report  → completeness, IQR outlier counts, quality label
  trend_analysis       → candidate time columns × numeric metrics
  custom_report        → significant Pearson correlations

Numeric columns here are decided by the first non-empty value alone, which is
deliberately looser than the 10-value inference used at ingestion. Report
counts may therefore disagree with the dataset's column types.
─────────────────────────────────────────────────────────────────────────────
"""

import asyncio
import re
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from datavault.config import settings
from datavault.core.statistics import describe, find_outliers, numeric_values, significant_correlations
from datavault.core.type_inference import is_missing, to_number
from datavault.models import (
    Column,
    ColumnAverage,
    CorrelationFinding,
    CustomReportContent,
    DataOverview,
    DataQualityContent,
    Dataset,
    ExecutiveSummaryContent,
    OutlierCount,
    Report,
    ReportKind,
    ReportResult,
    ReportStatus,
    TrendAnalysisContent,
)
from datavault.utils.exceptions import ReportError
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

REPORT_TITLES = {
    ReportKind.EXECUTIVE_SUMMARY: "Executive Summary Report",
    ReportKind.DATA_QUALITY: "Data Quality Assessment",
    ReportKind.TREND_ANALYSIS: "Trend Analysis Report",
    ReportKind.CUSTOM: "Custom Analysis Report",
}

DATE_PATTERN = re.compile(
    r"\d{4}[-/]\d{1,2}[-/]\d{1,2}|\d{1,2}[-/]\d{1,2}[-/]\d{4}|\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}"
)
TIME_NAME_HINTS = ("date", "time", "created", "updated", "timestamp", "year", "month", "day", "period", "when")


# ── shared helpers ────────────────────────────────────────────────────────────
def _first_present(dataset: Dataset, column: str):
    return next((row[column] for row in dataset.rows if not is_missing(row.get(column))), None)


def report_numeric_columns(dataset: Dataset) -> List[Column]:
    """Columns whose first non-empty value coerces to a number."""
    numeric = []
    for col in dataset.columns:
        sample = _first_present(dataset, col.name)
        if sample is not None and to_number(sample) is not None:
            numeric.append(col)
    return numeric


def time_columns(dataset: Dataset) -> List[Column]:
    found = []
    for col in dataset.columns:
        sample = _first_present(dataset, col.name)
        has_pattern = sample is not None and DATE_PATTERN.search(str(sample)) is not None
        has_name = any(hint in col.name.lower() for hint in TIME_NAME_HINTS)
        if has_pattern or has_name:
            found.append(col)
    return found


def count_missing(dataset: Dataset) -> int:
    return sum(
        1
        for row in dataset.rows
        for col in dataset.columns
        if is_missing(row.get(col.name))
    )


def completeness(dataset: Dataset) -> float:
    total_cells = len(dataset.rows) * len(dataset.columns)
    if total_cells == 0:
        return 100.0
    return (total_cells - count_missing(dataset)) / total_cells * 100


def quality_label(score: float) -> str:
    if score > 95:
        return "Excellent"
    if score > 85:
        return "Good"
    if score > 70:
        return "Fair"
    return "Needs Improvement"


# ── 1. EXECUTIVE SUMMARY ──────────────────────────────────────────────────────
def executive_summary(dataset: Dataset, numeric: List[Column]) -> ReportResult:
    total_rows = len(dataset.rows)
    total_columns = len(dataset.columns)

    metrics = []
    for col in numeric:
        summary = describe(dataset.rows, col.name)
        if summary is not None:
            metrics.append(ColumnAverage(column=col.name, average=summary.mean))

    complete = completeness(dataset)
    primary = ", ".join(f"{m.column} (avg: {m.average:.2f})" for m in metrics[:3])

    return ReportResult(
        summary_text=(
            f"Comprehensive analysis of {dataset.name} containing {total_rows} records across "
            f"{total_columns} dimensions. {len(numeric)} quantitative metrics identified for "
            f"statistical analysis."
        ),
        key_insights=[
            f"Dataset contains {total_rows:,} total records with {total_columns} columns",
            f"{len(numeric)} numeric columns available for quantitative analysis",
            f"Primary metrics: {primary}",
            f"Data completeness: {complete:.1f}%",
            "Recommended next steps: Trend analysis, correlation studies, and predictive modeling",
        ],
        content=ExecutiveSummaryContent(
            metrics=metrics,
            data_overview=DataOverview(
                total_rows=total_rows,
                total_columns=total_columns,
                numeric_count=len(numeric),
            ),
            completeness=complete,
            recommendations=["Implement data validation", "Regular monitoring setup", "Automated reporting"],
        ),
    )


# ── 2. DATA QUALITY ───────────────────────────────────────────────────────────
def data_quality(dataset: Dataset, numeric: List[Column]) -> ReportResult:
    total_cells = len(dataset.rows) * len(dataset.columns)
    missing = count_missing(dataset)
    complete = completeness(dataset)

    outlier_counts = []
    for col in numeric:
        values = numeric_values(dataset.rows, col.name)
        outliers = find_outliers(values)
        outlier_counts.append(OutlierCount(
            column=col.name,
            outliers=len(outliers),
            percentage=len(outliers) / len(values) * 100 if values else 0.0,
        ))

    missing_share = missing / total_cells * 100 if total_cells else 0.0
    label = quality_label(complete)

    return ReportResult(
        summary_text=(
            f"Data quality assessment reveals {complete:.1f}% completeness with {missing} missing "
            f"values across {total_cells} total data points."
        ),
        key_insights=[
            f"Overall data completeness: {complete:.1f}%",
            f"Missing values detected: {missing} ({missing_share:.2f}%)",
            f"Outliers detected: {sum(c.outliers for c in outlier_counts)} across {len(numeric)} numeric columns",
            f"Data types validated: {len(dataset.columns)} columns checked",
            f"Quality score: {label}",
        ],
        content=DataQualityContent(
            completeness=complete,
            missing_values=missing,
            total_cells=total_cells,
            outlier_analysis=outlier_counts,
            quality_score=complete,
            quality_label=label,
        ),
    )


# ── 3. TREND ANALYSIS ─────────────────────────────────────────────────────────
def trend_analysis(dataset: Dataset, numeric: List[Column]) -> ReportResult:
    timed = time_columns(dataset)
    relationships = len(timed) * len(numeric)
    has_time = len(timed) > 0

    return ReportResult(
        summary_text=(
            f"Trend analysis identifies {len(timed)} temporal columns and {len(numeric)} metrics "
            f"suitable for time-series analysis."
        ),
        key_insights=[
            f"{len(timed)} time-based columns identified for temporal analysis",
            f"{len(numeric)} numeric metrics available for trend modeling",
            f"Potential for {relationships} trend relationships",
            "Time-series analysis feasible with current data structure" if has_time
            else "No clear time dimension detected - consider adding timestamp data",
            "Recommended analysis: "
            + ("Seasonal decomposition, trend forecasting" if has_time else "Cross-sectional analysis, correlation studies"),
        ],
        content=TrendAnalysisContent(
            time_columns=[c.name for c in timed],
            numeric_columns=[c.name for c in numeric],
            potential_relationships=relationships,
            analysis_type="time-series" if has_time else "cross-sectional",
        ),
    )


# ── 4. CUSTOM ─────────────────────────────────────────────────────────────────
def custom_report(dataset: Dataset, numeric: List[Column]) -> ReportResult:
    correlations = significant_correlations(dataset.rows, [c.name for c in numeric])
    top = [
        CorrelationFinding(relationship=e.relationship, correlation=round(e.pearson_r, 3), strength=e.strength)
        for e in correlations[:5]
    ]
    strongest = top[0].relationship if top else "No strong correlations found"

    return ReportResult(
        summary_text=(
            f"Custom analysis reveals {len(correlations)} significant relationships and {len(numeric)} "
            f"key performance indicators for comprehensive business intelligence."
        ),
        key_insights=[
            f"{len(numeric)} key metrics identified for performance tracking",
            f"{len(correlations)} significant correlations discovered between variables",
            f"Strongest relationship: {strongest}",
            "Data suitable for: Machine learning, predictive analytics, statistical modeling",
            "Business impact: Enables data-driven decision making and performance optimization",
        ],
        content=CustomReportContent(
            correlations=top,
            significant_count=len(correlations),
            metrics=[c.name for c in numeric],
            analysis_capabilities=["Predictive modeling", "Performance dashboards", "Automated alerts"],
        ),
    )


_SYNTHESIZERS = {
    ReportKind.EXECUTIVE_SUMMARY: executive_summary,
    ReportKind.DATA_QUALITY: data_quality,
    ReportKind.TREND_ANALYSIS: trend_analysis,
    ReportKind.CUSTOM: custom_report,
}


# ── PUBLIC ENTRY POINT ────────────────────────────────────────────────────────
def generate_report_content(dataset: Dataset, kind: ReportKind) -> ReportResult:
    """
    Compute the summary, insights and typed content for one report kind.

    Raises:
        ReportError: If synthesis fails for any reason.
    """
    kind = ReportKind(kind)
    logger.info(f"Synthesizing {kind.value} for {dataset.name}")
    try:
        return _SYNTHESIZERS[kind](dataset, report_numeric_columns(dataset))
    except ReportError:
        raise
    except Exception as e:
        raise ReportError(f"Failed to generate {kind.value}: {type(e).__name__}: {e}") from e


class ReportService:
    """
    Tracks submitted reports, newest first. A submission returns at once in
    `generating` state; a background task later swaps in a terminal copy.
    Each task works on a deep copy of the dataset taken at submission.
    """

    def __init__(
        self,
        delay: Optional[float] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.delay = settings.REPORT_DELAY_SECONDS if delay is None else delay
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._reports: List[Report] = []
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def reports(self) -> List[Report]:
        return list(self._reports)

    def get(self, report_id: str) -> Optional[Report]:
        return next((r for r in self._reports if r.id == report_id), None)

    def submit(self, dataset: Dataset, kind: ReportKind) -> Report:
        """Register a report and schedule its generation on the running loop."""
        kind = ReportKind(kind)
        report = Report(
            id=f"report_{uuid.uuid4().hex}",
            title=REPORT_TITLES.get(kind, "Analysis Report"),
            kind=kind,
            dataset_name=dataset.name,
            created_at=self._clock(),
        )
        self._reports.insert(0, report)

        snapshot = dataset.model_copy(deep=True)
        task = asyncio.get_running_loop().create_task(self._complete(report.id, snapshot, kind))
        self._tasks[report.id] = task
        task.add_done_callback(lambda _t, rid=report.id: self._tasks.pop(rid, None))
        logger.info(f"Report {report.id} submitted ({kind.value})")
        return report

    async def _complete(self, report_id: str, snapshot: Dataset, kind: ReportKind) -> None:
        await asyncio.sleep(self.delay)
        try:
            result = generate_report_content(snapshot, kind)
            update = dict(
                summary_text=result.summary_text,
                key_insights=result.key_insights,
                content=result.content,
                status=ReportStatus.COMPLETED,
            )
        except ReportError as e:
            logger.error(f"Report {report_id} failed: {e.message}")
            update = dict(status=ReportStatus.ERROR, error=e.message)
        self._replace(report_id, update)

    def _replace(self, report_id: str, update: dict) -> None:
        self._reports = [
            r.model_copy(update=update) if r.id == report_id and not r.is_terminal else r
            for r in self._reports
        ]

    async def wait(self, report_id: Optional[str] = None) -> None:
        """Wait for one pending report, or for all of them."""
        if report_id is not None:
            task = self._tasks.get(report_id)
            tasks = [task] if task is not None else []
        else:
            tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
