from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, Field


class ColumnType(str, Enum):
    NUMBER = "number"
    DATE = "date"
    STRING = "string"
    BOOLEAN = "boolean"


class SourceFormat(str, Enum):
    CSV = "CSV"
    JSON = "JSON"


class Column(BaseModel):
    """Represents metadata for a single column."""
    name: str
    type: ColumnType
    description: Optional[str] = None


class DatasetMetadata(BaseModel):
    upload_date: Optional[datetime] = None
    file_size_bytes: Optional[int] = None
    original_file_name: Optional[str] = None
    source_format: Optional[SourceFormat] = None
    last_refresh: Optional[datetime] = None


class Dataset(BaseModel):
    """
    An uploaded table held in memory.
    Rows keep file order and every row carries a synthetic `_id`.
    """
    id: str
    name: str
    description: str = ""
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    columns: List[Column] = Field(default_factory=list)
    metadata: DatasetMetadata = Field(default_factory=DatasetMetadata)

    @property
    def column_names(self) -> List[str]:
        return [col.name for col in self.columns]

    def columns_of_type(self, column_type: ColumnType) -> List[Column]:
        return [col for col in self.columns if col.type == column_type]

    def to_frame(self) -> pd.DataFrame:
        """Tabular view of the rows, declared columns first."""
        df = pd.DataFrame(self.rows)
        ordered = [c for c in self.column_names if c in df.columns]
        extra = [c for c in df.columns if c not in ordered]
        return df[ordered + extra]
