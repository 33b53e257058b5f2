import asyncio
import random
from datetime import datetime, timezone

import pytest

from datavault.config import settings
from datavault.core.assistant import mock_response
from datavault.core.controller import APOLOGY, DashboardController
from datavault.core.monitoring import LiveMonitor
from datavault.core.reports import ReportService
from datavault.models import ChartKind, ReportKind, ReportStatus, Role
from datavault.utils.exceptions import (
    DatasetNotFoundError,
    NoActiveDatasetError,
    ParseError,
    ServiceUnavailableError,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

SALES_CSV = b"date,region,revenue\n2024-01-01,North,100\n2024-01-02,South,250\n2024-01-03,East,175\n"


class AlwaysLow(random.Random):
    """Every probability check passes."""
    def random(self):
        return 0.0


class AlwaysHigh(random.Random):
    """Every probability check fails."""
    def random(self):
        return 0.99


@pytest.fixture
def controller():
    return DashboardController(
        reports=ReportService(delay=0, clock=lambda: NOW),
        monitor=LiveMonitor(rng=AlwaysHigh(), clock=lambda: NOW, interval=0.01),
        clock=lambda: NOW,
        assistant=mock_response,
    )

# --- Tests for Dataset Actions ---

def test_upload_activates_dataset(controller):
    dataset = controller.upload(SALES_CSV, "sales.csv", "text/csv")
    assert controller.active.id == dataset.id
    assert dataset.metadata.upload_date == NOW
    assert controller.state.upload_error is None

def test_failed_upload_keeps_previous_dataset(controller):
    """Test that a parse error sets the banner and leaves the active dataset alone."""
    first = controller.upload(SALES_CSV, "sales.csv")
    with pytest.raises(ParseError):
        controller.upload(b"", "broken.csv")
    assert controller.active.id == first.id
    assert controller.state.upload_error == "The file is empty or contains no valid data."
    controller.dismiss_upload_error()
    assert controller.state.upload_error is None

async def test_upload_error_dismisses_itself(controller, monkeypatch):
    monkeypatch.setattr(settings, "ERROR_BANNER_SECONDS", 0.01)
    with pytest.raises(ParseError):
        controller.upload(b"", "broken.csv")
    assert controller.state.upload_error is not None
    await asyncio.sleep(0.05)
    assert controller.state.upload_error is None

def test_select_unknown_dataset(controller):
    with pytest.raises(DatasetNotFoundError):
        controller.select("nope")

def test_duplicate_and_refresh(controller):
    dataset = controller.upload(SALES_CSV, "sales.csv")
    copy = controller.duplicate(dataset.id)
    assert copy.name == "Sales (Copy)"
    assert controller.active.id == dataset.id

    refreshed = controller.refresh()
    assert refreshed.metadata.last_refresh == NOW
    assert controller.registry.get(dataset.id).metadata.last_refresh == NOW

def test_refresh_without_dataset(controller):
    with pytest.raises(NoActiveDatasetError):
        controller.refresh()

def test_visible_datasets_follow_filter_and_sort(controller):
    controller.upload(SALES_CSV, "sales.csv")
    controller.upload(b"a,b\n1,2\n", "alpha.csv")
    controller.request_sort("name")
    assert [ds.name for ds in controller.visible_datasets()] == ["Sales", "Alpha"]
    controller.request_sort("name")
    assert [ds.name for ds in controller.visible_datasets()] == ["Alpha", "Sales"]
    controller.set_filter("sal")
    assert [ds.name for ds in controller.visible_datasets()] == ["Sales"]

# --- Tests for Chat ---

async def test_ask_appends_messages_and_chart(controller):
    controller.upload(SALES_CSV, "sales.csv")
    reply = await controller.ask("Show me the trend over time")
    assert reply.role == Role.ASSISTANT
    assert reply.visualization.kind == ChartKind.LINE
    assert [m.role for m in controller.state.messages] == [Role.USER, Role.ASSISTANT]
    assert controller.state.current_visualization == reply.visualization

async def test_ask_failure_becomes_apology(controller):
    def unavailable(context):
        raise ServiceUnavailableError("timeout")

    controller.assistant = unavailable
    controller.upload(SALES_CSV, "sales.csv")
    reply = await controller.ask("anything")
    assert reply.content == APOLOGY
    assert reply.visualization is None
    assert len(controller.state.messages) == 2

async def test_ask_requires_dataset(controller):
    with pytest.raises(NoActiveDatasetError):
        await controller.ask("hello")

async def test_switching_dataset_clears_chat(controller):
    first = controller.upload(SALES_CSV, "sales.csv")
    controller.upload(b"a,b\n1,2\n", "alpha.csv")
    await controller.ask("total")
    controller.select(first.id)
    assert controller.state.messages == []
    assert controller.state.current_visualization is None

# --- Tests for Reports and Monitoring ---

async def test_generate_report_on_active_dataset(controller):
    controller.upload(SALES_CSV, "sales.csv")
    report = controller.generate_report(ReportKind.TREND_ANALYSIS)
    assert report.dataset_name == "Sales"
    await controller.reports.wait(report.id)
    assert controller.reports.get(report.id).status == ReportStatus.COMPLETED

def test_monitoring_needs_dataset(controller):
    assert controller.set_monitoring(True) is False
    assert controller.monitor.running is False

async def test_monitoring_follows_active_dataset(controller):
    """Test that monitoring restarts on switch and stops when the dataset goes."""
    first = controller.upload(SALES_CSV, "sales.csv")
    assert controller.set_monitoring(True) is True
    assert controller.monitor.dataset.id == first.id

    second = controller.upload(b"a,b\n1,2\n", "alpha.csv")
    assert controller.monitor.running
    assert controller.monitor.dataset.id == second.id

    await asyncio.sleep(0.05)
    assert controller.monitor.metrics.data_updates > 0

    controller.remove(second.id)
    assert controller.state.is_monitoring is False
    assert controller.monitor.running is False

async def test_clear_all_stops_monitoring(controller):
    controller.upload(SALES_CSV, "sales.csv")
    controller.set_monitoring(True)
    controller.clear_all()
    assert len(controller.registry) == 0
    assert controller.monitor.running is False
    assert controller.set_monitoring(True) is False

# --- Tests for Live Monitor ---

def _numeric_dataset(controller):
    rows = "\n".join(str(v) for v in range(1, 21))
    return controller.upload(f"v\n{rows}\n".encode("utf-8"), "numbers.csv")

def test_tick_formulas(controller):
    """Test the metric formulas with every random draw at zero."""
    dataset = _numeric_dataset(controller)
    monitor = LiveMonitor(rng=AlwaysLow(), clock=lambda: NOW)
    monitor.tick(dataset)

    metrics = monitor.metrics
    assert 1 <= metrics.data_updates <= 3
    assert metrics.cpu_usage == pytest.approx(10.2)
    assert metrics.memory_usage == pytest.approx(6.1)
    assert metrics.data_velocity == 52
    assert metrics.performance_score == pytest.approx(99.6)
    assert metrics.last_update == NOW
    assert metrics.alert_count == 1
    assert metrics.anomalies_detected == 1
    assert monitor.anomalies[0].column == "v"
    assert monitor.anomalies[0].value < monitor.anomalies[0].expected

def test_tick_without_events(controller):
    dataset = _numeric_dataset(controller)
    monitor = LiveMonitor(rng=AlwaysHigh(), clock=lambda: NOW)
    monitor.tick(dataset)
    assert monitor.alerts == []
    assert monitor.anomalies == []
    assert 5 <= monitor.metrics.cpu_usage <= 100
    assert 70 <= monitor.metrics.performance_score <= 100

def test_only_five_recent_alerts_kept(controller):
    dataset = _numeric_dataset(controller)
    monitor = LiveMonitor(rng=AlwaysLow(), clock=lambda: NOW)
    for _ in range(8):
        monitor.tick(dataset)
    assert len(monitor.alerts) == 5
    assert len(monitor.anomalies) == 5
    assert monitor.metrics.alert_count == 8

async def test_monitor_stop_cancels_loop(controller):
    dataset = _numeric_dataset(controller)
    monitor = LiveMonitor(rng=AlwaysHigh(), interval=0.01)
    monitor.start(dataset)
    assert monitor.snapshot().running
    monitor.switch(None)
    assert monitor.running is False
    assert monitor.snapshot().dataset_id is None
