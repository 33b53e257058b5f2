"""
visualization.py
─────────────────────────────────────────────────────────────────────────────
Builds chart configurations from dataset rows and renders them to Plotly.

The engine hands out `VisualizationConfig` objects; `render_plotly_json` is
the adapter the HTTP layer uses to ship a ready-to-draw figure.

Chart kind → Plotly trace
  bar      → Bar      (category on x)
  line     → Scatter  (lines+markers, timestamp on x)
  pie      → Pie      (category labels, summed values)
  scatter  → Scatter  (markers, timestamp on x)
  table    → Table    (id / timestamp / category / value)
─────────────────────────────────────────────────────────────────────────────
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import plotly.graph_objects as go

from datavault.core.type_inference import parse_date, to_number
from datavault.models import ChartKind, ColumnType, DataPoint, Dataset, VisualizationConfig
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

# ── colour palette (dark-theme friendly) ─────────────────────────────────────
CLR_NORMAL   = "#3B82F6"
CLR_ACCENT   = "#8B5CF6"
CLR_BG       = "rgba(0,0,0,0)"
FONT_COLOR   = "#FFFFFF"
PALETTE = [
    "#3B82F6", "#8B5CF6", "#EF4444", "#10B981", "#F59E0B", "#6366F1",
    "#EC4899", "#14B8A6", "#F97316", "#8B5A2B", "#6B7280", "#DC2626",
]

LAYOUT_BASE = dict(
    paper_bgcolor=CLR_BG,
    plot_bgcolor ="rgba(14,17,23,1)",
    font         =dict(color=FONT_COLOR, size=13),
    margin       =dict(l=60, r=40, t=70, b=80),
    xaxis        =dict(gridcolor="#2a2f3a", zerolinecolor="#2a2f3a"),
    yaxis        =dict(gridcolor="#2a2f3a", zerolinecolor="#2a2f3a"),
)


# ── helpers ───────────────────────────────────────────────────────────────────
def _first_column(dataset: Dataset, column_type: ColumnType) -> Optional[str]:
    cols = dataset.columns_of_type(column_type)
    return cols[0].name if cols else None


def _timestamp(value: Any, fallback: str) -> str:
    ts = parse_date(value)
    if ts is None:
        return fallback
    return ts.isoformat()


def _scalar_fields(row: Dict[str, Any]) -> Dict[str, Any]:
    fields = {}
    for key, value in row.items():
        if value is None:
            continue
        fields[key] = value if isinstance(value, (str, int, float, bool)) else str(value)
    return fields


def build_points(dataset: Dataset, limit: Optional[int] = None) -> List[DataPoint]:
    """
    Map rows to chart points: the first date column gives the timestamp, the
    first number column the value and the first string column the category.
    """
    time_col = _first_column(dataset, ColumnType.DATE)
    value_col = _first_column(dataset, ColumnType.NUMBER)
    category_col = _first_column(dataset, ColumnType.STRING)
    now = datetime.now(timezone.utc).isoformat()

    rows = dataset.rows if limit is None else dataset.rows[:limit]
    points = []
    for index, row in enumerate(rows):
        value = to_number(row.get(value_col)) if value_col else None
        category = row.get(category_col) if category_col else None
        points.append(DataPoint(
            id=f"point-{index}",
            timestamp=_timestamp(row.get(time_col), now) if time_col else now,
            value=float(value) if value is not None and math.isfinite(value) else 0.0,
            category=str(category) if category not in (None, "") else "default",
            extra_fields=_scalar_fields(row),
        ))
    return points


def build_visualization(
    dataset: Dataset,
    kind: ChartKind,
    title: str,
    limit: Optional[int] = None,
    options: Optional[Dict[str, Any]] = None,
) -> VisualizationConfig:
    return VisualizationConfig(
        kind=kind,
        title=title,
        points=build_points(dataset, limit),
        options=options or {},
    )


def _apply_layout(fig: go.Figure, title: str, xlabel: str = None, ylabel: str = None) -> go.Figure:
    updates = dict(**LAYOUT_BASE, title=dict(text=title, font=dict(size=18, color=FONT_COLOR)))
    if xlabel:
        updates["xaxis"] = {**LAYOUT_BASE.get("xaxis", {}), "title": xlabel}
    if ylabel:
        updates["yaxis"] = {**LAYOUT_BASE.get("yaxis", {}), "title": ylabel}
    fig.update_layout(**updates)
    return fig


# ── chart builders ────────────────────────────────────────────────────────────
def _chart_bar(config: VisualizationConfig) -> go.Figure:
    labels = [p.category or f"Point {i + 1}" for i, p in enumerate(config.points)]
    fig = go.Figure(go.Bar(
        x=labels,
        y=[p.value for p in config.points],
        marker_color=CLR_NORMAL,
        hovertemplate="<b>%{x}</b><br>Value: %{y:,.2f}<extra></extra>",
    ))
    return _apply_layout(fig, config.title, xlabel="Category", ylabel="Value")


def _chart_line(config: VisualizationConfig, markers_only: bool = False) -> go.Figure:
    fig = go.Figure(go.Scatter(
        x=[p.timestamp for p in config.points],
        y=[p.value for p in config.points],
        mode="markers" if markers_only else "lines+markers",
        line=dict(color=CLR_ACCENT, width=3),
        marker=dict(size=7, color=CLR_ACCENT),
        hovertemplate="%{x}<br>Value: %{y:,.2f}<extra></extra>",
    ))
    return _apply_layout(fig, config.title, xlabel="Time", ylabel="Value")


def _chart_pie(config: VisualizationConfig) -> go.Figure:
    totals: Dict[str, float] = {}
    for p in config.points:
        totals[p.category] = totals.get(p.category, 0.0) + p.value
    fig = go.Figure(go.Pie(
        labels=list(totals.keys()),
        values=list(totals.values()),
        marker=dict(colors=PALETTE),
        hole=0.35,
    ))
    return _apply_layout(fig, config.title)


def _chart_table(config: VisualizationConfig) -> go.Figure:
    fig = go.Figure(go.Table(
        header=dict(values=["ID", "Timestamp", "Category", "Value"], fill_color="#1f2937"),
        cells=dict(values=[
            [p.id for p in config.points],
            [p.timestamp for p in config.points],
            [p.category for p in config.points],
            [p.value for p in config.points],
        ]),
    ))
    return _apply_layout(fig, config.title)


# ── PUBLIC ENTRY POINT ────────────────────────────────────────────────────────
def render_plotly_json(config: Optional[VisualizationConfig]) -> Optional[str]:
    """Render a chart configuration to Plotly figure JSON, or None if empty."""
    if config is None or not config.points:
        logger.info("No points to render — skipping chart.")
        return None

    logger.info(f"Rendering {config.kind.value} chart: '{config.title[:60]}'")
    try:
        if config.kind == ChartKind.BAR:
            fig = _chart_bar(config)
        elif config.kind == ChartKind.LINE:
            fig = _chart_line(config)
        elif config.kind == ChartKind.SCATTER:
            fig = _chart_line(config, markers_only=True)
        elif config.kind == ChartKind.PIE:
            fig = _chart_pie(config)
        else:
            fig = _chart_table(config)
        return fig.to_json()

    except Exception as e:
        logger.error(f"Chart rendering failed: {e}", exc_info=True)
        return None
