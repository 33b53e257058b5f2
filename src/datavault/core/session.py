"""
Application state for one dashboard session.

`AppState` is a plain value; every user action is a pure function taking the
current state and returning the next one. The controller is the only place
that stores the result.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from datavault.core.registry import SortField, SortOrder
from datavault.models import ChatMessage, Role, VisualizationConfig


class AppState(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    current_visualization: Optional[VisualizationConfig] = None
    dataset_filter: str = ""
    sort_by: SortField = SortField.UPLOAD_DATE
    sort_order: SortOrder = SortOrder.DESC
    upload_error: Optional[str] = None
    is_monitoring: bool = False


def dataset_activated(state: AppState) -> AppState:
    return state.model_copy(update={"messages": [], "current_visualization": None, "upload_error": None})


def dataset_removed(state: AppState, was_active: bool) -> AppState:
    if not was_active:
        return state
    return state.model_copy(update={"messages": [], "current_visualization": None, "is_monitoring": False})


def all_cleared(state: AppState) -> AppState:
    return dataset_removed(state, was_active=True)


def message_appended(state: AppState, message: ChatMessage) -> AppState:
    update = {"messages": state.messages + [message]}
    if message.role == Role.ASSISTANT and message.visualization is not None:
        update["current_visualization"] = message.visualization
    return state.model_copy(update=update)


def sort_requested(state: AppState, field: SortField) -> AppState:
    """Clicking the current field flips the order; a new field starts descending."""
    field = SortField(field)
    if state.sort_by == field:
        order = SortOrder.ASC if state.sort_order == SortOrder.DESC else SortOrder.DESC
        return state.model_copy(update={"sort_order": order})
    return state.model_copy(update={"sort_by": field, "sort_order": SortOrder.DESC})


def filter_changed(state: AppState, text: str) -> AppState:
    return state.model_copy(update={"dataset_filter": text or ""})


def upload_failed(state: AppState, message: str) -> AppState:
    return state.model_copy(update={"upload_error": message})


def upload_error_cleared(state: AppState) -> AppState:
    return state.model_copy(update={"upload_error": None})


def monitoring_toggled(state: AppState, enabled: bool, has_dataset: bool) -> AppState:
    return state.model_copy(update={"is_monitoring": bool(enabled and has_dataset)})
