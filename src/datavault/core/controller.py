import asyncio
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union

from datavault.config import settings
from datavault.core import session
from datavault.core.assistant import query_data
from datavault.core.ingestion import ingest_file
from datavault.core.monitoring import LiveMonitor
from datavault.core.registry import DatasetRegistry, SortField
from datavault.core.reports import ReportService
from datavault.core.session import AppState
from datavault.models import ChatMessage, Dataset, QueryContext, Report, ReportKind, Role
from datavault.utils.exceptions import (
    DatasetNotFoundError,
    NoActiveDatasetError,
    ParseError,
    ServiceUnavailableError,
)
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

APOLOGY = "I apologize, but I encountered an error while processing your request. Please try again."


class DashboardController:
    """
    Top-level owner of one dashboard session: the dataset registry, the
    application state, the report service and the live monitor. Every user
    action goes through here so dependent state is reset in one place.
    """

    def __init__(
        self,
        registry: Optional[DatasetRegistry] = None,
        reports: Optional[ReportService] = None,
        monitor: Optional[LiveMonitor] = None,
        clock: Optional[Callable[[], datetime]] = None,
        assistant: Callable[[QueryContext], object] = query_data,
    ):
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.registry = registry or DatasetRegistry(clock=self.clock)
        self.reports = reports or ReportService(clock=self.clock)
        self.monitor = monitor or LiveMonitor(clock=self.clock)
        self.assistant = assistant
        self.state = AppState()

    # ── helpers ──────────────────────────────────────────────────────────────
    @property
    def active(self) -> Optional[Dataset]:
        return self.registry.active

    def require_active(self) -> Dataset:
        dataset = self.registry.active
        if dataset is None:
            raise NoActiveDatasetError()
        return dataset

    def require(self, dataset_id: str) -> Dataset:
        dataset = self.registry.get(dataset_id)
        if dataset is None:
            raise DatasetNotFoundError(dataset_id)
        return dataset

    def _sync_monitor(self) -> None:
        if self.state.is_monitoring and self.active is not None:
            self.monitor.switch(self.active)
        else:
            self.monitor.stop()

    def _schedule_error_dismissal(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.call_later(settings.ERROR_BANNER_SECONDS, self.dismiss_upload_error)

    # ── datasets ─────────────────────────────────────────────────────────────
    def upload(
        self,
        content: Union[bytes, str],
        file_name: str,
        mime_type: str = "",
        file_size: Optional[int] = None,
    ) -> Dataset:
        """
        Ingest a file, add it and make it active. On a ParseError the banner is
        set and the previously active dataset stays as it was.
        """
        try:
            dataset = ingest_file(content, file_name, mime_type, file_size, uploaded_at=self.clock())
        except ParseError as e:
            logger.error(f"Upload of {file_name} rejected: {e.message}")
            self.state = session.upload_failed(self.state, e.message)
            self._schedule_error_dismissal()
            raise

        self.registry.add(dataset)
        self.select(dataset.id)
        return dataset

    def dismiss_upload_error(self) -> None:
        self.state = session.upload_error_cleared(self.state)

    def select(self, dataset_id: str) -> Dataset:
        dataset = self.require(dataset_id)
        self.registry.select(dataset_id)
        self.state = session.dataset_activated(self.state)
        self._sync_monitor()
        return dataset

    def remove(self, dataset_id: str) -> None:
        self.require(dataset_id)
        was_active = self.registry.remove(dataset_id)
        self.state = session.dataset_removed(self.state, was_active)
        if was_active:
            self.monitor.stop()

    def clear_all(self) -> None:
        self.registry.clear()
        self.state = session.all_cleared(self.state)
        self.monitor.stop()

    def duplicate(self, dataset_id: str) -> Dataset:
        self.require(dataset_id)
        return self.registry.duplicate(dataset_id)

    def refresh(self) -> Dataset:
        dataset = self.require_active()
        refreshed = dataset.model_copy(update={
            "metadata": dataset.metadata.model_copy(update={"last_refresh": self.clock()}),
        })
        self.registry.replace(refreshed)
        return refreshed

    def set_filter(self, text: str) -> None:
        self.state = session.filter_changed(self.state, text)

    def request_sort(self, field: SortField) -> None:
        self.state = session.sort_requested(self.state, field)

    def visible_datasets(self) -> List[Dataset]:
        matching = self.registry.filter(self.state.dataset_filter)
        return self.registry.sort(self.state.sort_by, self.state.sort_order, datasets=matching)

    # ── chat ─────────────────────────────────────────────────────────────────
    def _message(self, role: Role, content: str, visualization=None) -> ChatMessage:
        return ChatMessage(
            id=uuid.uuid4().hex,
            role=role,
            content=content,
            timestamp=self.clock(),
            visualization=visualization,
        )

    async def ask(self, text: str) -> ChatMessage:
        """Send a question about the active dataset; failures become an apology."""
        dataset = self.require_active()
        context = QueryContext(
            dataset=dataset,
            previous_messages=list(self.state.messages),
            user_query=text,
        )
        self.state = session.message_appended(self.state, self._message(Role.USER, text))

        try:
            response = await asyncio.to_thread(self.assistant, context)
            reply = self._message(Role.ASSISTANT, response.message, response.visualization)
        except ServiceUnavailableError as e:
            logger.error(f"Assistant unavailable: {e.message}")
            reply = self._message(Role.ASSISTANT, APOLOGY)
        except Exception as e:
            logger.error(f"Assistant failed unexpectedly: {e}", exc_info=True)
            reply = self._message(Role.ASSISTANT, APOLOGY)

        self.state = session.message_appended(self.state, reply)
        return reply

    # ── reports ──────────────────────────────────────────────────────────────
    def generate_report(self, kind: ReportKind) -> Report:
        return self.reports.submit(self.require_active(), kind)

    # ── monitoring ───────────────────────────────────────────────────────────
    def set_monitoring(self, enabled: bool) -> bool:
        if enabled and self.active is None:
            logger.warning("Real-time monitoring requires an active dataset.")
        self.state = session.monitoring_toggled(self.state, enabled, self.active is not None)
        self._sync_monitor()
        return self.state.is_monitoring
