"""
Helpers for scalar cell values coming from pandas or openpyxl.
"""
import math
from typing import Any

import pandas as pd


def is_blank(value: Any) -> bool:
    """
    Check whether a cell value counts as empty.

    None, NaN/NaT and the empty string are blank. Zero and whitespace
    strings are real values.
    """
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: Any) -> str:
    """
    Render a cell value as the text used for SKU keys and header labels.

    Integral floats drop their fractional part so that a cell stored as
    34.0 reads the same as one stored as 34.
    """
    if is_blank(value):
        return ""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def to_python(value: Any) -> Any:
    """Convert numpy/pandas scalars to plain Python values openpyxl can write."""
    if is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    # numpy scalar
    if hasattr(value, "item") and not isinstance(value, (str, bytes)):
        return value.item()
    return value
