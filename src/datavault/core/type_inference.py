"""
Value coercion and sample-based column typing.

A column's type is decided once, from the first few non-empty values it
holds. Later values are never consulted, so a column that turns textual
after the sample keeps its `number` type.
"""

import math
import re
import warnings
from typing import Any, Iterable, List, Optional, Union

import pandas as pd

from datavault.models import ColumnType

SAMPLE_SIZE = 10

_NUMERIC_LITERAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INTEGER_LITERAL = re.compile(r"^[+-]?\d+$")

Number = Union[int, float]


def is_missing(value: Any) -> bool:
    """None, NaN and the empty string all count as missing cells."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, float):
        return math.isnan(value)
    return False


def _bounded(number: int) -> Number:
    """Integers beyond float range become a signed infinity."""
    try:
        float(number)
    except OverflowError:
        return math.inf if number > 0 else -math.inf
    return number


def to_number(value: Any) -> Optional[Number]:
    """
    Coerce a raw cell to a number, or return None.
    Strings must be a complete numeric literal once trimmed.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return _bounded(value)
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if isinstance(value, str):
        text = value.strip()
        if not _NUMERIC_LITERAL.match(text):
            return None
        if _INTEGER_LITERAL.match(text):
            try:
                return _bounded(int(text))
            except ValueError:
                # past the interpreter's digit limit for int parsing
                return float(text)
        return float(text)
    return None


def parse_date(value: Any) -> Optional[pd.Timestamp]:
    """Parse a calendar date, returning None when the text is not one."""
    if isinstance(value, bool) or is_missing(value):
        return None
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            ts = pd.to_datetime(str(value), errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return None
    if ts is None or pd.isna(ts):
        return None
    return ts


def sample_values(rows: Iterable[dict], column: str, size: int = SAMPLE_SIZE) -> List[Any]:
    """First `size` non-missing values of a column, in row order."""
    sample = []
    for row in rows:
        value = row.get(column)
        if is_missing(value):
            continue
        sample.append(value)
        if len(sample) >= size:
            break
    return sample


def infer_type(sample: List[Any]) -> ColumnType:
    if not sample:
        return ColumnType.STRING

    if all(to_number(v) is not None for v in sample):
        return ColumnType.NUMBER

    if all(parse_date(v) is not None for v in sample):
        return ColumnType.DATE

    if all(isinstance(v, bool) for v in sample):
        return ColumnType.BOOLEAN

    return ColumnType.STRING


def infer_column_type(rows: List[dict], column: str) -> ColumnType:
    return infer_type(sample_values(rows, column))
