import json
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from datavault.core.type_inference import infer_column_type, is_missing, to_number
from datavault.models import Column, Dataset, DatasetMetadata, SourceFormat
from datavault.utils.exceptions import ParseError
from datavault.utils.logger import get_logger

logger = get_logger(__name__)

CSV_MIME_TYPES = ("text/csv", "application/vnd.ms-excel")
JSON_MIME_TYPE = "application/json"
ID_FIELD = "_id"

_QUOTES = "'\""


# ---------------------------------------------------------------------------
# FORMAT DETECTION
# ---------------------------------------------------------------------------

def _is_multiline(text: str) -> bool:
    return len(text.split("\n")) > 1


def looks_like_csv(text: str) -> bool:
    stripped = text.strip()
    return (
        "," in text
        and _is_multiline(text)
        and not stripped.startswith("{")
        and not stripped.startswith("[")
    )


def looks_like_json(text: str) -> bool:
    stripped = text.strip()
    return (
        (stripped.startswith("{") and stripped.endswith("}"))
        or (stripped.startswith("[") and stripped.endswith("]"))
    )


def detect_format(file_name: str, mime_type: str, text: str) -> SourceFormat:
    """
    Decide how to parse an upload. The extension wins, then the content,
    then the declared MIME type, then a comma heuristic. A comma-bearing
    multi-line file always ends up as CSV.
    """
    name = (file_name or "").lower()
    mime = mime_type or ""
    csv_content = looks_like_csv(text)
    json_content = looks_like_json(text)
    csv_mime = mime in CSV_MIME_TYPES
    json_mime = mime == JSON_MIME_TYPE

    if name.endswith(".csv"):
        fmt = SourceFormat.CSV
    elif name.endswith(".json"):
        fmt = SourceFormat.JSON
    elif csv_content and not json_content:
        fmt = SourceFormat.CSV
    elif json_content and not csv_content:
        fmt = SourceFormat.JSON
    elif csv_mime and not json_mime:
        fmt = SourceFormat.CSV
    elif json_mime and not csv_mime:
        fmt = SourceFormat.JSON
    elif "," in text:
        fmt = SourceFormat.CSV
    else:
        fmt = SourceFormat.JSON

    if fmt != SourceFormat.CSV and "," in text and _is_multiline(text):
        logger.info("Comma-separated multi-line content, forcing CSV parsing.")
        fmt = SourceFormat.CSV

    return fmt


# ---------------------------------------------------------------------------
# PARSERS
# ---------------------------------------------------------------------------

def _clean_cell(raw: str) -> str:
    return raw.strip().strip(_QUOTES)


def parse_csv(text: str) -> Tuple[List[Dict[str, Any]], List[str]]:
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        raise ParseError("The file is empty or contains no valid data.")

    header = [_clean_cell(cell) for cell in lines[0].split(",")]
    rows = []
    for index, line in enumerate(lines[1:]):
        cells = [_clean_cell(cell) for cell in line.split(",")]
        row: Dict[str, Any] = {}
        for position, column in enumerate(header):
            value = cells[position] if position < len(cells) else ""
            number = to_number(value)
            row[column] = number if number is not None else value
        if all(is_missing(row[column]) for column in header):
            continue
        row[ID_FIELD] = index + 1
        rows.append(row)

    return rows, header


def parse_json(text: str) -> Tuple[List[Dict[str, Any]], List[str], SourceFormat]:
    """
    Parse a JSON array of objects. Malformed JSON that still reads like
    comma-separated lines is handed to the CSV parser instead.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        if "," in text and _is_multiline(text):
            logger.warning(f"JSON parsing failed ({e}), falling back to CSV.")
            rows, columns = parse_csv(text)
            return rows, columns, SourceFormat.CSV
        raise ParseError(f"Invalid JSON format: {e}")

    if not isinstance(payload, list):
        raise ParseError("JSON file must contain an array of objects.")
    if not all(isinstance(item, dict) for item in payload):
        raise ParseError("JSON file must contain an array of objects.")

    rows = []
    for index, item in enumerate(payload):
        row = dict(item)
        if ID_FIELD not in row:
            row[ID_FIELD] = index + 1
        rows.append(row)

    columns = [key for key in payload[0] if key != ID_FIELD] if payload else []
    return rows, columns, SourceFormat.JSON


# ---------------------------------------------------------------------------
# NAMING
# ---------------------------------------------------------------------------

def display_name(file_name: str) -> str:
    """'sales_data-2024.csv' -> 'Sales Data 2024'"""
    stem = re.sub(r"\.[^/.]+$", "", file_name)
    spaced = re.sub(r"[_-]", " ", stem)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def describe_upload(fmt: SourceFormat, row_count: int, column_count: int) -> str:
    return f"Uploaded {fmt.value} dataset with {row_count} records and {column_count} columns"


def _decode(raw: Union[bytes, str]) -> str:
    if isinstance(raw, bytes):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"File is not valid UTF-8 text: {e}")
    else:
        text = raw
    if text.startswith("\ufeff"):
        text = text[1:]
    return text


# ---------------------------------------------------------------------------
# MAIN ENTRY POINT
# ---------------------------------------------------------------------------

def ingest_file(
    raw: Union[bytes, str],
    file_name: str,
    mime_type: str = "",
    file_size: Optional[int] = None,
    uploaded_at: Optional[datetime] = None,
) -> Dataset:
    """
    Turn an uploaded file into a typed in-memory dataset.

    Args:
        raw: File content as bytes (UTF-8) or already decoded text.
        file_name: Original file name, used for format detection and display.
        mime_type: Declared MIME type; may be empty or wrong.
        file_size: Size in bytes as reported by the upload. Defaults to len(raw).
        uploaded_at: Upload timestamp. Defaults to now (UTC).

    Returns:
        The parsed Dataset with inferred column types.

    Raises:
        ParseError: If the content is neither usable CSV nor JSON, or has no rows.
    """
    logger.info(f"Starting ingestion for file: {file_name}")

    text = _decode(raw)
    fmt = detect_format(file_name, mime_type, text)
    logger.info(f"Detected format: {fmt.value}")

    if fmt == SourceFormat.CSV:
        rows, column_names = parse_csv(text)
    else:
        rows, column_names, fmt = parse_json(text)

    if not rows:
        raise ParseError("No valid data found in file.")

    columns = [
        Column(name=name, type=infer_column_type(rows, name))
        for name in column_names
    ]

    if file_size is None:
        file_size = len(raw.encode("utf-8")) if isinstance(raw, str) else len(raw)

    dataset = Dataset(
        id=uuid.uuid4().hex,
        name=display_name(file_name),
        description=describe_upload(fmt, len(rows), len(columns)),
        rows=rows,
        columns=columns,
        metadata=DatasetMetadata(
            upload_date=uploaded_at or datetime.now(timezone.utc),
            file_size_bytes=file_size,
            original_file_name=file_name,
            source_format=fmt,
        ),
    )

    logger.info(f"Ingestion successful. Shape: ({len(rows)}, {len(columns)})")
    return dataset
