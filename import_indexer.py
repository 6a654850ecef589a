import logging
import re
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict

from sheet_layout import DEFAULT_LAYOUT, SheetLayout
from utils.cells import cell_text, is_blank, to_python

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s")


class MissingHeaderError(Exception):
    """Raised when a key column label is not present in the import header row."""

    def __init__(self, missing_labels: List[str], header_row: int, found_labels: List[str]):
        self.missing_labels = missing_labels
        self.header_row = header_row
        self.found_labels = found_labels
        super().__init__(
            f"Missing required columns: {', '.join(missing_labels)} "
            f"in import header row {header_row}"
        )


class ImportRecord(BaseModel):
    """
    Size quantities of one import article.

    Attributes:
        sizes: Size values in column order, blanks kept as None
        is_numeric_scale: True when the article uses the numeric size scale
        row: Import sheet row the record was read from
    """
    model_config = ConfigDict(frozen=True)

    sizes: Tuple[Any, ...]
    is_numeric_scale: bool
    row: int


class ImportIndex:
    """Read-only SKU lookup built from the import sheet, with scan counters."""

    def __init__(self, records: Dict[str, ImportRecord], rows_scanned: int,
                 rows_skipped: int, duplicate_skus: int):
        self.records: Mapping[str, ImportRecord] = MappingProxyType(dict(records))
        self.rows_scanned = rows_scanned
        self.rows_skipped = rows_skipped
        self.duplicate_skus = duplicate_skus

    def get(self, sku: str) -> Optional[ImportRecord]:
        return self.records.get(sku)

    def __contains__(self, sku: str) -> bool:
        return sku in self.records

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return (f"ImportIndex(skus={len(self.records)}, rows_scanned={self.rows_scanned}, "
                f"rows_skipped={self.rows_skipped}, duplicate_skus={self.duplicate_skus})")


def make_sku(model: Any, fabric: Any, color: Any) -> str:
    """Concatenate Model, Fabric and Color Code with no separator."""
    return f"{cell_text(model)}{cell_text(fabric)}{cell_text(color)}"


def _cell(grid: pd.DataFrame, row: int, column: int) -> Any:
    # grid is 0-indexed, sheet coordinates are 1-indexed
    if row < 1 or column < 1 or row > grid.shape[0] or column > grid.shape[1]:
        return None
    value = grid.iat[row - 1, column - 1]
    return None if is_blank(value) else value


def read_header_labels(grid: pd.DataFrame, header_row: int) -> List[str]:
    """Collect header labels from column 1 up to the first empty cell."""
    labels = []
    column = 1
    while True:
        value = _cell(grid, header_row, column)
        if value is None:
            break
        labels.append(cell_text(value))
        column += 1
    return labels


def locate_key_columns(labels: List[str], layout: SheetLayout) -> Tuple[int, int, int]:
    """
    Find the 1-indexed columns of Model, Fabric and Color Code.

    Raises:
        MissingHeaderError: If any of the three labels is absent
    """
    missing = [label for label in layout.key_labels() if label not in labels]
    if missing:
        raise MissingHeaderError(missing, layout.import_header_row, labels)
    model_label, fabric_label, color_label = layout.key_labels()
    return (labels.index(model_label) + 1,
            labels.index(fabric_label) + 1,
            labels.index(color_label) + 1)


def is_numeric_scale(scale: Any, layout: SheetLayout = DEFAULT_LAYOUT) -> bool:
    return cell_text(scale).lower() == layout.numeric_scale_value


def find_size_offset(grid: pd.DataFrame, size_count: int, layout: SheetLayout) -> int:
    """
    Position of the first size column whose header reads "34".

    Whitespace inside the header is ignored. Returns 0 when no such
    header exists, meaning the vector is kept whole.
    """
    for offset in range(size_count):
        header = _cell(grid, layout.import_header_row, layout.import_sizes_start_column + offset)
        if header is None:
            continue
        if _WHITESPACE.sub("", cell_text(header)) == layout.woman_first_size_label:
            return offset
    return 0


def build_index(grid: pd.DataFrame, is_woman: bool = False,
                layout: SheetLayout = DEFAULT_LAYOUT) -> ImportIndex:
    """
    Build the SKU index from the import sheet.

    Rows missing Model, Fabric, Color Code or scale are skipped without
    error. When two rows share a SKU the later one wins.

    Args:
        grid: Import sheet read positionally (no header inference)
        is_woman: Whether the woman numeric layout is requested
        layout: Sheet positions

    Returns:
        ImportIndex over all valid rows

    Raises:
        MissingHeaderError: If a key column label cannot be found
    """
    labels = read_header_labels(grid, layout.import_header_row)
    logger.debug(f"Import header labels: {labels}")
    model_col, fabric_col, color_col = locate_key_columns(labels, layout)

    last_row = grid.shape[0]
    last_column = grid.shape[1]
    size_count = max(0, last_column - layout.import_sizes_start_column + 1)
    trim_woman_sizes = layout.gender_aware and is_woman
    woman_offset = find_size_offset(grid, size_count, layout) if trim_woman_sizes else 0

    records: Dict[str, ImportRecord] = {}
    rows_scanned = 0
    rows_skipped = 0
    duplicate_skus = 0

    for row in range(layout.import_first_data_row, last_row + 1):
        rows_scanned += 1
        model = _cell(grid, row, model_col)
        fabric = _cell(grid, row, fabric_col)
        color = _cell(grid, row, color_col)
        scale = _cell(grid, row, layout.import_scale_column)

        if model is None or fabric is None or color is None or scale is None:
            rows_skipped += 1
            logger.debug(f"Skipping import row {row}: missing key or scale")
            continue

        numeric = is_numeric_scale(scale, layout)
        sizes = [to_python(_cell(grid, row, layout.import_sizes_start_column + i))
                 for i in range(size_count)]

        if trim_woman_sizes and numeric:
            sizes = sizes[woman_offset:]

        sku = make_sku(model, fabric, color)
        if sku in records:
            duplicate_skus += 1
            logger.debug(f"SKU {sku} at row {row} overwrites row {records[sku].row}")
        records[sku] = ImportRecord(sizes=tuple(sizes), is_numeric_scale=numeric, row=row)

    logger.info(
        f"Indexed {len(records)} SKUs from {rows_scanned} import rows "
        f"({rows_skipped} skipped, {duplicate_skus} duplicates)"
    )
    return ImportIndex(records, rows_scanned, rows_skipped, duplicate_skus)
