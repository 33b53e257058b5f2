"""
monitoring.py
─────────────────────────────────────────────────────────────────────────────
Simulated live monitoring of the active dataset.

The metrics are synthetic: they scale with the row count and jitter with the
injected random source. The only real statistics involved are those of the
anomaly detector. One asyncio task runs per monitored dataset; switching
datasets cancels the old loop before starting a new one.
─────────────────────────────────────────────────────────────────────────────
"""

import asyncio
import math
import random
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, Field

from datavault.config import settings
from datavault.core.anomaly import detect_anomaly
from datavault.core.statistics import numeric_values
from datavault.models import Anomaly, ColumnType, Dataset
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

ALERT_PROBABILITY = 0.15
ANOMALY_PROBABILITY = 0.1
KEEP_RECENT = 5

_ALERT_TYPES = ("info", "info", "warning")


class Alert(BaseModel):
    id: str
    type: Literal["info", "warning", "error"]
    message: str
    timestamp: datetime


class LiveMetrics(BaseModel):
    data_updates: int = 0
    alert_count: int = 0
    anomalies_detected: int = 0
    performance_score: float = 100.0
    cpu_usage: float = 0.0
    memory_usage: float = 0.0
    data_velocity: int = 0
    last_update: Optional[datetime] = None


class MonitorSnapshot(BaseModel):
    running: bool
    dataset_id: Optional[str] = None
    metrics: LiveMetrics
    alerts: List[Alert] = Field(default_factory=list)
    anomalies: List[Anomaly] = Field(default_factory=list)


def _clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def _alert_messages(name: str) -> List[str]:
    return [
        f"New records processed in {name}",
        f"Data validation completed for {name}",
        f"Column analysis updated for {name}",
        f"Data quality check passed for {name}",
        f"Memory usage optimized for {name}",
        f"Index rebuilt for {name}",
        f"Backup created for {name}",
        "Data synchronization completed",
    ]


class LiveMonitor:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        interval: Optional[float] = None,
    ):
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.interval = settings.MONITOR_INTERVAL_SECONDS if interval is None else interval
        self.metrics = LiveMetrics()
        self.alerts: List[Alert] = []
        self.anomalies: List[Anomaly] = []
        self._dataset: Optional[Dataset] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def dataset(self) -> Optional[Dataset]:
        return self._dataset

    def snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(
            running=self.running,
            dataset_id=self._dataset.id if self._dataset else None,
            metrics=self.metrics.model_copy(),
            alerts=list(self.alerts),
            anomalies=list(self.anomalies),
        )

    # ── one simulation step ──────────────────────────────────────────────────
    def tick(self, dataset: Dataset) -> None:
        now = self.clock()
        size = len(dataset.rows)
        rng = self.rng

        self.metrics = self.metrics.model_copy(update=dict(
            data_updates=self.metrics.data_updates + rng.randint(1, 3),
            last_update=now,
            cpu_usage=_clamp(15 + size / 100 + (rng.random() - 0.5) * 10, 5, 100),
            memory_usage=_clamp(10 + size / 200 + (rng.random() - 0.5) * 8, 5, 100),
            data_velocity=math.floor(size / 10 + rng.random() * 200) + 50,
            performance_score=_clamp(100 - (size / 500) * 10 + rng.random() * 15, 70, 100),
        ))

        if rng.random() < ALERT_PROBABILITY:
            alert = Alert(
                id=uuid.uuid4().hex,
                type=rng.choice(_ALERT_TYPES),
                message=rng.choice(_alert_messages(dataset.name)),
                timestamp=now,
            )
            self.alerts = [alert] + self.alerts[:KEEP_RECENT - 1]
            self.metrics.alert_count += 1

        numeric_columns = dataset.columns_of_type(ColumnType.NUMBER)
        if numeric_columns and rng.random() < ANOMALY_PROBABILITY:
            column = rng.choice(numeric_columns)
            anomaly = detect_anomaly(
                column.name,
                numeric_values(dataset.rows, column.name),
                rng=rng,
                clock=lambda: now,
            )
            if anomaly is not None:
                logger.info(f"Anomaly flagged in {column.name}: severity={anomaly.severity.value}")
                self.anomalies = [anomaly] + self.anomalies[:KEEP_RECENT - 1]
                self.metrics.anomalies_detected += 1

    # ── loop lifecycle ───────────────────────────────────────────────────────
    async def _run(self, dataset: Dataset) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.tick(dataset)
            except Exception as e:
                logger.error(f"Monitoring tick failed for {dataset.name}: {e}", exc_info=True)

    def start(self, dataset: Dataset) -> None:
        """Start monitoring; must be called from within a running event loop."""
        self.stop()
        self._dataset = dataset
        self._task = asyncio.get_running_loop().create_task(self._run(dataset))
        logger.info(f"Monitoring started for {dataset.name}")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Monitoring stopped.")
        self._dataset = None

    def switch(self, dataset: Optional[Dataset]) -> None:
        """Follow the active dataset: restart against it, or stop when it is gone."""
        if dataset is None:
            if self.running:
                logger.warning("Monitoring requires an active dataset; stopping.")
            self.stop()
            return
        self.start(dataset)
