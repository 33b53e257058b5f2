from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field

from .dataset import Dataset

Primitive = Union[str, int, float, bool]


class ChartKind(str, Enum):
    BAR = "bar"
    LINE = "line"
    PIE = "pie"
    SCATTER = "scatter"
    TABLE = "table"


class DataPoint(BaseModel):
    id: str
    timestamp: str
    value: float
    category: str
    extra_fields: Dict[str, Primitive] = Field(default_factory=dict)


class VisualizationConfig(BaseModel):
    kind: ChartKind
    title: str
    points: List[DataPoint] = Field(default_factory=list)
    options: Dict[str, Primitive] = Field(default_factory=dict)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    id: str
    role: Role
    content: str
    timestamp: datetime
    visualization: Optional[VisualizationConfig] = None


class QueryContext(BaseModel):
    dataset: Dataset
    previous_messages: List[ChatMessage] = Field(default_factory=list)
    user_query: str


class AssistantResponse(BaseModel):
    message: str
    query: Optional[str] = None
    visualization: Optional[VisualizationConfig] = None
    insights: List[str] = Field(default_factory=list)
