import json
import math

import pytest

from datavault.core.ingestion import (
    describe_upload,
    detect_format,
    display_name,
    ingest_file,
    looks_like_csv,
    looks_like_json,
    parse_csv,
    parse_json,
)
from datavault.core.type_inference import infer_type, is_missing, sample_values, to_number
from datavault.models import ColumnType, SourceFormat
from datavault.utils.exceptions import ParseError

# --- Tests for Type Inference ---

def test_to_number_coercions():
    """Test that numeric literals coerce and everything else does not."""
    assert to_number("30") == 30
    assert to_number(" 2.5 ") == 2.5
    assert to_number("-1e3") == -1000.0
    assert to_number(7) == 7
    assert to_number("12abc") is None
    assert to_number("") is None
    assert to_number(True) is None
    assert to_number(None) is None
    assert to_number(float("nan")) is None

def test_to_number_out_of_range_integers():
    """Test that integers too wide for a float become infinity instead of raising."""
    assert to_number("9" * 400) == math.inf
    assert to_number("-" + "9" * 400) == -math.inf
    assert to_number("9" * 5000) == math.inf
    assert to_number(10 ** 400) == math.inf
    assert to_number(10 ** 300) == 10 ** 300

def test_is_missing():
    """Test that None, NaN and the empty string are missing but zero is not."""
    assert is_missing(None)
    assert is_missing("")
    assert is_missing(float("nan"))
    assert not is_missing(0)
    assert not is_missing(False)
    assert not is_missing(" ")

def test_infer_type_order():
    """Test that number beats date, date beats boolean and string is the fallback."""
    assert infer_type([1, "2", 3.5]) == ColumnType.NUMBER
    assert infer_type(["2024-01-01", "2024-02-15"]) == ColumnType.DATE
    assert infer_type([True, False]) == ColumnType.BOOLEAN
    assert infer_type(["Alice", "Bob"]) == ColumnType.STRING
    assert infer_type([]) == ColumnType.STRING

def test_sample_only_reads_first_ten_values():
    """Test that a column that turns textual after ten numbers stays numeric."""
    rows = [{"v": i} for i in range(10)] + [{"v": "oops"}]
    assert len(sample_values(rows, "v")) == 10
    assert infer_type(sample_values(rows, "v")) == ColumnType.NUMBER

def test_sample_skips_missing_values():
    """Test that empty cells do not count towards the sample."""
    rows = [{"v": ""}, {"v": None}, {"v": "x"}]
    assert sample_values(rows, "v") == ["x"]

# --- Tests for Format Detection ---

def test_extension_wins_over_content():
    """Test that a .csv extension forces CSV even for JSON-looking text."""
    assert detect_format("data.csv", "application/json", '[{"a":1}]') == SourceFormat.CSV

def test_json_extension_without_commas():
    """Test that a .json file with no commas is parsed as JSON."""
    assert detect_format("data.json", "", '[{"a":1}]') == SourceFormat.JSON

def test_multiline_commas_force_csv():
    """Test that comma-bearing multi-line content is always treated as CSV."""
    text = '[\n{"a":1},\n{"a":2}\n]'
    assert detect_format("data.json", "application/json", text) == SourceFormat.CSV

def test_content_sniffing_without_extension():
    """Test that content decides the format when there is no extension."""
    assert detect_format("upload", "", "a,b\n1,2") == SourceFormat.CSV
    assert detect_format("upload", "", '{"a": 1}') == SourceFormat.JSON

def test_mime_type_fallback():
    """Test that the MIME type decides when the content is ambiguous."""
    assert detect_format("upload", "text/csv", "hello") == SourceFormat.CSV
    assert detect_format("upload", "application/json", "hello") == SourceFormat.JSON
    assert detect_format("upload", "", "a,b") == SourceFormat.CSV
    assert detect_format("upload", "", "hello") == SourceFormat.JSON

def test_looks_like_helpers():
    assert looks_like_csv("a,b\n1,2")
    assert not looks_like_csv("a,b")
    assert not looks_like_csv('[1,\n2]')
    assert looks_like_json(' [1, 2] ')
    assert not looks_like_json('[1, 2')

# --- Tests for Parsers ---

def test_parse_csv_assigns_ids_and_numbers():
    """Test that CSV cells become numbers where possible and rows get ids."""
    rows, columns = parse_csv("name,age\nAlice,30\nBob,25\n")
    assert columns == ["name", "age"]
    assert rows == [
        {"name": "Alice", "age": 30, "_id": 1},
        {"name": "Bob", "age": 25, "_id": 2},
    ]

def test_parse_csv_strips_quotes_and_pads_short_rows():
    """Test that quoted header cells are cleaned and missing cells become empty."""
    rows, columns = parse_csv('"name","city"\nAlice\n')
    assert columns == ["name", "city"]
    assert rows == [{"name": "Alice", "city": "", "_id": 1}]

def test_parse_csv_drops_all_empty_rows():
    """Test that rows with no values are dropped."""
    rows, _ = parse_csv("a,b\n1,2\n,\n3,4")
    assert [r["a"] for r in rows] == [1, 3]

def test_parse_csv_empty_raises():
    with pytest.raises(ParseError):
        parse_csv("   \n\n")

def test_parse_json_keeps_existing_ids():
    """Test that an existing _id is kept and columns exclude it."""
    rows, columns, fmt = parse_json('[{"_id": 9, "x": 1}, {"x": 2}]')
    assert fmt == SourceFormat.JSON
    assert columns == ["x"]
    assert rows[0]["_id"] == 9
    assert rows[1]["_id"] == 2

def test_parse_json_requires_array_of_objects():
    with pytest.raises(ParseError):
        parse_json('{"x": 1}')
    with pytest.raises(ParseError):
        parse_json("[1, 2, 3]")

def test_parse_json_falls_back_to_csv():
    """Test that malformed JSON that reads as CSV is parsed as CSV."""
    rows, columns, fmt = parse_json("a,b\n1,2")
    assert fmt == SourceFormat.CSV
    assert columns == ["a", "b"]
    assert rows[0]["b"] == 2

def test_parse_json_invalid_raises():
    with pytest.raises(ParseError):
        parse_json("not json")

# --- Tests for Ingestion ---

def test_ingest_valid_csv():
    """Test that a valid CSV is parsed into a typed dataset."""
    dataset = ingest_file(b"name,age\nAlice,30\nBob,25\n", "people.csv", "text/csv")
    assert dataset.name == "People"
    assert len(dataset.rows) == 2
    assert [(c.name, c.type) for c in dataset.columns] == [
        ("name", ColumnType.STRING),
        ("age", ColumnType.NUMBER),
    ]
    assert dataset.metadata.source_format == SourceFormat.CSV
    assert dataset.metadata.file_size_bytes == len(b"name,age\nAlice,30\nBob,25\n")
    assert dataset.description == "Uploaded CSV dataset with 2 records and 2 columns"

def test_ingest_valid_json():
    """Test that a JSON array of objects is ingested with numeric typing."""
    dataset = ingest_file('[{"x":1},{"x":2},{"x":3}]'.encode("utf-8"), "data.json")
    assert len(dataset.rows) == 3
    assert dataset.columns[0].name == "x"
    assert dataset.columns[0].type == ColumnType.NUMBER
    assert dataset.metadata.source_format == SourceFormat.JSON

def test_ingest_strips_byte_order_mark():
    dataset = ingest_file("\ufeffa,b\n1,2".encode("utf-8"), "bom.csv")
    assert dataset.column_names == ["a", "b"]

def test_ingest_empty_csv():
    """Test that an empty CSV raises an error."""
    with pytest.raises(ParseError):
        ingest_file(b"", "empty.csv")

def test_ingest_header_only_has_no_data():
    """Test that a header without rows is rejected."""
    with pytest.raises(ParseError, match="No valid data"):
        ingest_file(b"a,b\n", "header.csv")

def test_ingest_empty_json_array():
    with pytest.raises(ParseError):
        ingest_file(b"[]", "empty.json")

def test_ingest_round_trips_exported_rows():
    """Test that exported rows re-ingest through the JSON path."""
    rows = [{"a": 1, "b": "x", "_id": 1}, {"a": 2, "b": "y", "_id": 2}]
    dataset = ingest_file(json.dumps(rows), "rows.json")
    assert dataset.rows == rows
    assert dataset.column_names == ["a", "b"]

def test_display_name_and_description():
    assert display_name("sales_data-2024.csv") == "Sales Data 2024"
    assert describe_upload(SourceFormat.JSON, 3, 1) == "Uploaded JSON dataset with 3 records and 1 columns"
