"""
Pytest configuration file.

This file is automatically loaded by pytest and provides global test configuration.
It ensures the project's source directory is added to the Python path so that
modules can be imported properly during test execution, and provides factories
for the import and template workbooks used across the test modules.
"""
import os
import sys

import numpy as np
import pandas as pd
import pytest
from openpyxl import Workbook

# Add the current directory to the Python path
# This ensures imports work correctly when running tests
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

IMPORT_HEADERS = ["Season", "Model", "Fabric", "Color Code", "Scale"]
ALPHA_SIZE_HEADERS = ["XS", "S", "M", "L"]
NUMERIC_SIZE_HEADERS = ["32", "34", "36", "38"]


def grid_from_rows(rows):
    """
    Build a positional import grid the way pandas reads it with header=None.

    Args:
        rows: List of sheet rows, index 0 is sheet row 1; None marks an empty cell

    Returns:
        pandas.DataFrame of object dtype with NaN for empty cells
    """
    width = max((len(row) for row in rows), default=0)
    padded = [[np.nan if value is None else value for value in row] + [np.nan] * (width - len(row))
              for row in rows]
    return pd.DataFrame(padded, dtype=object)


def import_rows(data_rows, headers=None, size_headers=None):
    """Sheet rows of an import file: title block, header row 5, data from row 6."""
    headers = IMPORT_HEADERS if headers is None else headers
    size_headers = ALPHA_SIZE_HEADERS if size_headers is None else size_headers
    return [
        ["BUYING IMPORT"],
        [],
        ["Season", "FW25"],
        [],
        list(headers) + list(size_headers),
    ] + [list(row) for row in data_rows]


@pytest.fixture
def make_import_grid():
    """Factory returning an in-memory import grid with the standard title block."""
    def _make(data_rows, headers=None, size_headers=None):
        return grid_from_rows(import_rows(data_rows, headers, size_headers))
    return _make


@pytest.fixture
def make_import_workbook(tmp_path):
    """
    Factory writing an import workbook to disk.

    Each data row is (season, model, fabric, color, scale, *sizes) starting at row 6.
    """
    def _make(data_rows, headers=None, size_headers=None, name="import.xlsx"):
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Import"
        for row_number, row in enumerate(import_rows(data_rows, headers, size_headers), start=1):
            for column, value in enumerate(row, start=1):
                if value is not None:
                    sheet.cell(row=row_number, column=column, value=value)
        path = tmp_path / name
        workbook.save(path)
        return str(path)
    return _make


@pytest.fixture
def make_template_workbook(tmp_path):
    """
    Factory writing a template workbook to disk.

    Each template row is (model, fabric, color) written to columns 3-5 from row 8.
    Extra cells can be pre-filled with {(row, column): value}.
    """
    def _make(template_rows, prefilled=None, name="template.xlsx"):
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = "Template"
        sheet.cell(row=1, column=1, value="BUYING TEMPLATE")
        sheet.cell(row=7, column=3, value="Model")
        sheet.cell(row=7, column=4, value="Fabric")
        sheet.cell(row=7, column=5, value="Color Code")
        for row_number, (model, fabric, color) in enumerate(template_rows, start=8):
            sheet.cell(row=row_number, column=1, value=row_number - 7)
            sheet.cell(row=row_number, column=3, value=model)
            sheet.cell(row=row_number, column=4, value=fabric)
            sheet.cell(row=row_number, column=5, value=color)
        for (row, column), value in (prefilled or {}).items():
            sheet.cell(row=row, column=column, value=value)
        path = tmp_path / name
        workbook.save(path)
        return str(path)
    return _make


@pytest.fixture
def template_sheet():
    """In-memory template worksheet with three article rows starting at row 8."""
    workbook = Workbook()
    sheet = workbook.active
    rows = [("A1", "F1", "C1"), ("A2", "F2", "C2"), ("B9", "F9", "C9")]
    for row_number, (model, fabric, color) in enumerate(rows, start=8):
        sheet.cell(row=row_number, column=3, value=model)
        sheet.cell(row=row_number, column=4, value=fabric)
        sheet.cell(row=row_number, column=5, value=color)
    return sheet
