import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from datavault.models import Dataset
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SortField(str, Enum):
    NAME = "name"
    UPLOAD_DATE = "uploadDate"
    FILE_SIZE = "fileSize"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _upload_key(dataset: Dataset) -> float:
    stamp = dataset.metadata.upload_date or _EPOCH
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp.timestamp()


def _size_key(dataset: Dataset) -> int:
    return dataset.metadata.file_size_bytes or 0


_SORT_KEYS = {
    SortField.NAME: lambda ds: ds.name,
    SortField.UPLOAD_DATE: _upload_key,
    SortField.FILE_SIZE: _size_key,
}


class DatasetRegistry:
    """
    In-memory collection of uploaded datasets, newest first, plus the id of
    the active one. The active id is always a member or None.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._datasets: List[Dataset] = []
        self._active_id: Optional[str] = None
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __len__(self) -> int:
        return len(self._datasets)

    def __contains__(self, dataset_id: str) -> bool:
        return self.get(dataset_id) is not None

    @property
    def datasets(self) -> List[Dataset]:
        return list(self._datasets)

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active(self) -> Optional[Dataset]:
        if self._active_id is None:
            return None
        return self.get(self._active_id)

    def get(self, dataset_id: str) -> Optional[Dataset]:
        return next((ds for ds in self._datasets if ds.id == dataset_id), None)

    def add(self, dataset: Dataset) -> None:
        self._datasets.insert(0, dataset)
        logger.info(f"Dataset added: {dataset.name} ({len(self._datasets)} total)")

    def select(self, dataset_id: str) -> None:
        """Set the active dataset; unknown ids are ignored."""
        if dataset_id not in self:
            logger.warning(f"Ignoring selection of unknown dataset: {dataset_id}")
            return
        self._active_id = dataset_id

    def remove(self, dataset_id: str) -> bool:
        """
        Delete a dataset. Returns True when it was the active one, in which
        case the active pointer is cleared and the caller must reset any state
        that depended on it.
        """
        self._datasets = [ds for ds in self._datasets if ds.id != dataset_id]
        if self._active_id == dataset_id:
            self._active_id = None
            logger.info(f"Active dataset removed: {dataset_id}")
            return True
        return False

    def clear(self) -> None:
        self._datasets = []
        self._active_id = None

    def duplicate(self, dataset_id: str) -> Optional[Dataset]:
        source = self.get(dataset_id)
        if source is None:
            return None
        copy = source.model_copy(update={
            "id": uuid.uuid4().hex,
            "name": f"{source.name} (Copy)",
            "metadata": source.metadata.model_copy(update={"upload_date": self._clock()}),
        })
        self._datasets.insert(0, copy)
        return copy

    def replace(self, dataset: Dataset) -> None:
        self._datasets = [dataset if ds.id == dataset.id else ds for ds in self._datasets]

    def filter(self, text: str) -> List[Dataset]:
        needle = (text or "").lower()
        return [
            ds for ds in self._datasets
            if needle in ds.name.lower() or needle in ds.description.lower()
        ]

    def sort(
        self,
        by: SortField = SortField.UPLOAD_DATE,
        direction: SortOrder = SortOrder.DESC,
        datasets: Optional[List[Dataset]] = None,
    ) -> List[Dataset]:
        items = self._datasets if datasets is None else datasets
        return sorted(items, key=_SORT_KEYS[SortField(by)], reverse=SortOrder(direction) == SortOrder.DESC)
