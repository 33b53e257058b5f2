"""Download payloads for reports and datasets."""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from datavault.models import Dataset, Report

GENERATED_BY = "DataVault Pro Analytics Platform"


def report_payload(report: Report) -> Dict[str, Any]:
    data = report.model_dump(mode="json")
    return {
        "title": report.title,
        "dataset": report.dataset_name,
        "timestamp": report.created_at.isoformat(),
        "summary": report.summary_text,
        "keyInsights": list(report.key_insights),
        "content": data["content"] or {},
        "generatedBy": GENERATED_BY,
    }


def report_filename(report: Report, exported_at: Optional[datetime] = None) -> str:
    """Title with underscores, stamped with the export date."""
    title = re.sub(r"\s+", "_", report.title)
    stamp = exported_at or datetime.now(timezone.utc)
    return f"{title}_{stamp.date().isoformat()}.json"


def export_report(report: Report) -> str:
    return json.dumps(report_payload(report), indent=2, ensure_ascii=False)


def dataset_filename(dataset: Dataset) -> str:
    return f"{dataset.name}-export.json"


def export_dataset(dataset: Dataset) -> str:
    return dataset.model_dump_json()


def rows_filename(dataset: Dataset) -> str:
    return f"{dataset.name}.json"


def export_rows(dataset: Dataset) -> str:
    # Single line so the file re-ingests through the JSON path
    return json.dumps(dataset.rows, default=str, ensure_ascii=False)
