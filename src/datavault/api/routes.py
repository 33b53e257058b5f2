from typing import List, Optional

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from datavault.config import settings
from datavault.core import export, statistics
from datavault.core.controller import DashboardController
from datavault.core.registry import SortField
from datavault.core.visualization import render_plotly_json
from datavault.models import Dataset, ReportKind
from datavault.utils.exceptions import AppException
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs"
)

# --- In-Memory Session ---
CONTROLLER = DashboardController()


def get_controller() -> DashboardController:
    return CONTROLLER


class ChatRequest(BaseModel):
    query: str


class ReportRequest(BaseModel):
    kind: ReportKind


class MonitoringRequest(BaseModel):
    enabled: bool


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _summary(dataset: Dataset) -> dict:
    return {
        "id": dataset.id,
        "name": dataset.name,
        "description": dataset.description,
        "rows": len(dataset.rows),
        "columns": [{"name": c.name, "type": c.type.value} for c in dataset.columns],
        "metadata": dataset.metadata.model_dump(mode="json"),
    }


def _download(body: str, filename: str) -> Response:
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "online", "message": f"{settings.APP_NAME} API is running"}


# --- Datasets ---

@app.post("/datasets/upload")
async def upload_file(file: UploadFile = File(...), controller: DashboardController = Depends(get_controller)):
    """
    Uploads a CSV or JSON file, parses it and makes it the active dataset.
    """
    logger.info(f"Received file upload: {file.filename}")
    content = await file.read()

    limit = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
    if len(content) > limit:
        raise HTTPException(status_code=400, detail=f"File exceeds {settings.MAX_UPLOAD_SIZE_MB}MB limit.")

    dataset = controller.upload(content, file.filename or "upload", file.content_type or "", len(content))
    return {
        "message": "File uploaded and processed successfully.",
        "dataset": _summary(dataset),
    }


@app.get("/datasets")
async def list_datasets(
    filter: Optional[str] = None,
    sort_by: Optional[SortField] = None,
    controller: DashboardController = Depends(get_controller),
):
    """Lists datasets using the session's filter and sort; query params update them."""
    if filter is not None:
        controller.set_filter(filter)
    if sort_by is not None:
        controller.request_sort(sort_by)
    return {
        "active_id": controller.registry.active_id,
        "filter": controller.state.dataset_filter,
        "sort_by": controller.state.sort_by.value,
        "sort_order": controller.state.sort_order.value,
        "upload_error": controller.state.upload_error,
        "datasets": [_summary(ds) for ds in controller.visible_datasets()],
    }


@app.delete("/datasets")
async def clear_datasets(controller: DashboardController = Depends(get_controller)):
    controller.clear_all()
    return {"message": "All datasets deleted."}


@app.post("/datasets/refresh")
async def refresh_dataset(controller: DashboardController = Depends(get_controller)):
    return _summary(controller.refresh())


@app.post("/datasets/{dataset_id}/select")
async def select_dataset(dataset_id: str, controller: DashboardController = Depends(get_controller)):
    return _summary(controller.select(dataset_id))


@app.post("/datasets/{dataset_id}/duplicate")
async def duplicate_dataset(dataset_id: str, controller: DashboardController = Depends(get_controller)):
    return _summary(controller.duplicate(dataset_id))


@app.delete("/datasets/{dataset_id}")
async def delete_dataset(dataset_id: str, controller: DashboardController = Depends(get_controller)):
    controller.remove(dataset_id)
    return {"message": "Dataset deleted.", "active_id": controller.registry.active_id}


@app.get("/datasets/{dataset_id}/export")
async def export_dataset(dataset_id: str, controller: DashboardController = Depends(get_controller)):
    dataset = controller.require(dataset_id)
    return _download(export.export_dataset(dataset), export.dataset_filename(dataset))


@app.get("/datasets/{dataset_id}/rows")
async def export_rows(dataset_id: str, controller: DashboardController = Depends(get_controller)):
    dataset = controller.require(dataset_id)
    return _download(export.export_rows(dataset), export.rows_filename(dataset))


# --- Analysis ---

@app.get("/analysis/describe")
async def describe_columns(
    columns: List[str] = Query(...),
    controller: DashboardController = Depends(get_controller),
):
    dataset = controller.require_active()
    summaries = statistics.describe_columns(dataset.rows, columns)
    return {name: s.model_dump() for name, s in summaries.items()}


@app.get("/analysis/correlation")
async def correlation(
    columns: List[str] = Query(...),
    controller: DashboardController = Depends(get_controller),
):
    dataset = controller.require_active()
    matrix = statistics.correlation_matrix(dataset.rows, columns)
    significant = statistics.significant_correlations(dataset.rows, columns)
    return {
        "matrix": matrix.model_dump(),
        "significant": [
            {**entry.model_dump(), "relationship": entry.relationship}
            for entry in significant
        ],
    }


@app.get("/analysis/trend")
async def trend(
    time_column: str,
    value_column: str,
    controller: DashboardController = Depends(get_controller),
):
    dataset = controller.require_active()
    return statistics.linear_trend(dataset.rows, time_column, value_column).model_dump(mode="json")


# --- Chat ---

@app.post("/chat")
async def chat(payload: ChatRequest, controller: DashboardController = Depends(get_controller)):
    """
    Accepts a natural language question about the active dataset and returns
    the assistant's reply with an optional chart.
    """
    if not payload.query.strip():
        raise HTTPException(status_code=400, detail="Query field is required.")

    reply = await controller.ask(payload.query)
    return {
        "query": payload.query,
        "message": reply.model_dump(mode="json"),
        "chart": render_plotly_json(reply.visualization),
    }


# --- Reports ---

@app.post("/reports", status_code=202)
async def create_report(payload: ReportRequest, controller: DashboardController = Depends(get_controller)):
    return controller.generate_report(payload.kind).model_dump(mode="json")


@app.get("/reports")
async def list_reports(controller: DashboardController = Depends(get_controller)):
    return [r.model_dump(mode="json") for r in controller.reports.reports]


@app.get("/reports/{report_id}")
async def get_report(report_id: str, controller: DashboardController = Depends(get_controller)):
    report = controller.reports.get(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Report '{report_id}' not found.")
    return report.model_dump(mode="json")


@app.get("/reports/{report_id}/export")
async def export_report(report_id: str, controller: DashboardController = Depends(get_controller)):
    report = controller.reports.get(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail=f"Report '{report_id}' not found.")
    return _download(export.export_report(report), export.report_filename(report, controller.clock()))


# --- Monitoring ---

@app.get("/monitoring")
async def monitoring_status(controller: DashboardController = Depends(get_controller)):
    return controller.monitor.snapshot().model_dump(mode="json")


@app.post("/monitoring")
async def toggle_monitoring(payload: MonitoringRequest, controller: DashboardController = Depends(get_controller)):
    enabled = controller.set_monitoring(payload.enabled)
    return {"is_monitoring": enabled, **controller.monitor.snapshot().model_dump(mode="json")}
