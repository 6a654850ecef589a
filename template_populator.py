import logging
from typing import Optional

from openpyxl.worksheet.worksheet import Worksheet
from pydantic import BaseModel

from import_indexer import ImportIndex, make_sku
from sheet_layout import DEFAULT_LAYOUT, SheetLayout
from utils.cells import is_blank

logger = logging.getLogger(__name__)


class PopulateStats(BaseModel):
    """Counters of one pass over the template sheet."""
    rows_scanned: int = 0
    rows_skipped: int = 0
    rows_matched: int = 0
    cells_written: int = 0


def populate_template(sheet: Worksheet, index: ImportIndex, is_woman: bool = False,
                      layout: SheetLayout = DEFAULT_LAYOUT,
                      key_sheet: Optional[Worksheet] = None) -> PopulateStats:
    """
    Write import size quantities into the matching template rows.

    Each template row whose Model + Fabric + Color Code matches an index
    entry receives the entry's sizes from the scale and gender start
    column onward. Blank size values leave the template cell as it was,
    rows without a match are not touched. Rows with a blank key cell are
    skipped before any lookup, the same rule the import side applies.

    Args:
        sheet: Template worksheet, modified in place
        index: SKU index built from the import sheet
        is_woman: Selects the woman numeric start column
        layout: Sheet positions
        key_sheet: Same sheet loaded with cached formula values, used to
            read the key cells. Defaults to ``sheet``.

    Returns:
        PopulateStats with scan and write counters
    """
    stats = PopulateStats()
    key_sheet = key_sheet if key_sheet is not None else sheet
    last_row = sheet.max_row

    for row in range(layout.template_first_data_row, last_row + 1):
        stats.rows_scanned += 1
        model = key_sheet.cell(row=row, column=layout.template_model_column).value
        fabric = key_sheet.cell(row=row, column=layout.template_fabric_column).value
        color = key_sheet.cell(row=row, column=layout.template_color_column).value
        if is_blank(model) or is_blank(fabric) or is_blank(color):
            stats.rows_skipped += 1
            logger.debug(f"Skipping template row {row}: blank key cell")
            continue

        sku = make_sku(model, fabric, color)
        record = index.get(sku)
        if record is None:
            continue

        stats.rows_matched += 1
        start_column = layout.start_column(record.is_numeric_scale, is_woman)
        for offset, value in enumerate(record.sizes):
            if is_blank(value):
                continue
            sheet.cell(row=row, column=start_column + offset, value=value)
            stats.cells_written += 1

        logger.debug(f"Template row {row} matched SKU {sku} (import row {record.row}), start column {start_column}")

    logger.info(
        f"Matched {stats.rows_matched} of {stats.rows_scanned} template rows "
        f"({stats.rows_skipped} with blank keys), {stats.cells_written} cells written"
    )
    return stats
