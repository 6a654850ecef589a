import io
import os
import logging
import time
import uuid
from http import HTTPStatus
from typing import Optional, Tuple

import pandas as pd
from openpyxl import load_workbook
from openpyxl.workbook.workbook import Workbook
from pydantic import BaseModel

from import_indexer import ImportIndex, MissingHeaderError, build_index
from sheet_layout import SheetLayout, layout_from_env
from template_populator import PopulateStats, populate_template
from utils.result import Result

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_IDENTIFIER = os.getenv("TEMPLATE_IDENTIFIER", "Hyperoom")
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class LogContext:
    """Context manager for tracking and logging operation metrics"""
    def __init__(self, operation_name: str, **kwargs):
        self.operation_name = operation_name
        self.start_time = None
        self.request_id = kwargs.get('request_id', str(uuid.uuid4())[:8])
        self.extra = kwargs

    def __enter__(self):
        self.start_time = time.time()
        logger.info(f"Starting {self.operation_name}", extra={**self.extra, "request_id": self.request_id})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time
        if exc_type:
            logger.error(
                f"Failed {self.operation_name} in {duration:.2f}s: {str(exc_val)}",
                extra={**self.extra, "request_id": self.request_id, "duration": duration},
                exc_info=(exc_type, exc_val, exc_tb)
            )
        else:
            logger.info(
                f"Completed {self.operation_name} in {duration:.2f}s",
                extra={**self.extra, "request_id": self.request_id, "duration": duration}
            )


class CompileRequest(BaseModel):
    """
    Schema for one template compilation.

    Attributes:
        template_path: Path of the staged template workbook
        import_path: Path of the staged import workbook
        is_woman: Write numeric sizes into the woman column range
        output_identifier: Name part of TEMPLATE_<identifier>_compilato.xlsx
    """
    template_path: Optional[str] = None
    import_path: Optional[str] = None
    is_woman: bool = False
    output_identifier: Optional[str] = None


class CompileStats(BaseModel):
    indexed_skus: int = 0
    import_rows_skipped: int = 0
    duplicate_skus: int = 0
    template_rows_scanned: int = 0
    template_rows_skipped: int = 0
    template_rows_matched: int = 0
    cells_written: int = 0


class CompiledWorkbook(BaseModel):
    """
    Output of a successful compilation.

    Attributes:
        content: Serialized xlsx bytes of the populated template
        filename: Suggested download name
        stats: Row and cell counters of the run
    """
    content: bytes
    filename: str
    stats: CompileStats


def output_filename(identifier: Optional[str] = None) -> str:
    return f"TEMPLATE_{identifier or DEFAULT_OUTPUT_IDENTIFIER}_compilato.xlsx"


class WorkbookCompiler:
    """
    Compiles a template workbook from an import workbook.

    The import sheet is indexed by SKU first, then every template row with
    a matching SKU receives the import size quantities. Any failure aborts
    the whole run; no partial workbook is returned.
    """

    @staticmethod
    def compile(request: CompileRequest, layout: Optional[SheetLayout] = None) -> Result[CompiledWorkbook]:
        """
        Run the full import-to-template compilation.

        Args:
            request: CompileRequest with both staged workbook paths
            layout: Sheet positions, defaults to the environment layout

        Returns:
            Result[CompiledWorkbook]: The populated workbook bytes or the error
        """
        layout = layout or layout_from_env()
        request_id = str(uuid.uuid4())[:8]
        log_context = {
            "request_id": request_id,
            "template_path": request.template_path,
            "import_path": request.import_path,
            "is_woman": request.is_woman,
        }

        logger.info("Compiling template workbook", extra=log_context)

        try:
            with LogContext("file validation", **log_context):
                validation_result = WorkbookCompiler._validate_file(request.template_path, "template").and_then(
                    lambda _: WorkbookCompiler._validate_file(request.import_path, "import")
                )

            if validation_result.is_failure():
                logger.warning(f"File validation failed: {validation_result.error}", extra=log_context)
                return validation_result

            with LogContext("import indexing", **log_context):
                index_result = WorkbookCompiler._read_import_sheet(request.import_path).and_then(
                    lambda grid: WorkbookCompiler._index_import_sheet(grid, request.is_woman, layout)
                )

            if index_result.is_failure():
                logger.warning(f"Import indexing failed: {index_result.error}", extra=log_context)
                return index_result

            index = index_result.data

            with LogContext("template loading", **log_context):
                template_result = WorkbookCompiler._load_template(request.template_path)

            if template_result.is_failure():
                logger.warning(f"Template loading failed: {template_result.error}", extra=log_context)
                return template_result

            workbook, values_workbook = template_result.data

            with LogContext("template population", **log_context):
                populate_stats = populate_template(
                    workbook.worksheets[0], index, request.is_woman, layout,
                    key_sheet=values_workbook.worksheets[0]
                )

            stats = WorkbookCompiler._collect_stats(index, populate_stats)
            filename = output_filename(request.output_identifier)

            with LogContext("workbook serialization", **log_context):
                compile_result = WorkbookCompiler._serialize(workbook).map(
                    lambda content: CompiledWorkbook(content=content, filename=filename, stats=stats)
                )

            compile_result.on_success(
                lambda compiled: logger.info(
                    f"Compiled {compiled.filename}: {stats.template_rows_matched} rows matched, "
                    f"{stats.import_rows_skipped} import rows skipped",
                    extra={**log_context, **stats.model_dump()}
                )
            )
            return compile_result

        except Exception as e:
            logger.exception("Unexpected error during template compilation", extra={**log_context, "error": str(e)})
            return Result.server_error(f"Processing error: {str(e)}")

    @staticmethod
    def _validate_file(file_path: Optional[str], role: str) -> Result[str]:
        """
        Validates that a staged workbook path was given and exists.

        Args:
            file_path: Path to the staged workbook
            role: "template" or "import", used in error messages

        Returns:
            Result containing the path or an error message
        """
        if not file_path:
            logger.error(f"No {role} file path provided")
            return Result.invalid_input(f"The {role} file is required")

        if not os.path.exists(file_path):
            logger.error(f"{role.capitalize()} file not found", extra={"file_path": file_path})
            return Result.not_found(f"{role.capitalize()} file does not exist at path: {file_path}")

        return Result.ok(file_path)

    @staticmethod
    def _read_import_sheet(file_path: str) -> Result[pd.DataFrame]:
        """
        Reads the first import sheet as a positional grid.

        No header inference is done: grid row and column i map to sheet
        row and column i + 1. Only truly empty cells become NaN.
        """
        try:
            start_time = time.time()
            grid = pd.read_excel(
                file_path,
                sheet_name=0,
                header=None,
                dtype=object,
                keep_default_na=False,
                na_values=[""],
                engine="openpyxl",
            )
            logger.info(
                "Read import sheet",
                extra={
                    "file_path": file_path,
                    "row_count": grid.shape[0],
                    "column_count": grid.shape[1],
                    "read_time_seconds": f"{time.time() - start_time:.2f}"
                }
            )
            return Result.ok(grid)
        except Exception as e:
            logger.error(
                "Failed to read import workbook",
                extra={"file_path": file_path, "error": str(e), "error_type": type(e).__name__}
            )
            return Result.fail(f"Failed to read import workbook: {str(e)}", status_code=HTTPStatus.BAD_REQUEST)

    @staticmethod
    def _index_import_sheet(grid: pd.DataFrame, is_woman: bool, layout: SheetLayout) -> Result[ImportIndex]:
        try:
            return Result.ok(build_index(grid, is_woman, layout))
        except MissingHeaderError as e:
            logger.error(
                "Import header validation failed",
                extra={"missing_columns": e.missing_labels, "available_columns": e.found_labels}
            )
            return Result.column_not_found(str(e))

    @staticmethod
    def _load_template(file_path: str) -> Result[Tuple[Workbook, Workbook]]:
        """
        Loads the template twice: once with formulas kept, for writing and
        saving, and once with the cached formula results, for reading the
        key cells. A template never saved by a spreadsheet application has
        no cached results, so its formula key cells read as blank.
        """
        try:
            workbook = load_workbook(file_path)
            values_workbook = load_workbook(file_path, data_only=True)
        except Exception as e:
            logger.error(
                "Failed to read template workbook",
                extra={"file_path": file_path, "error": str(e), "error_type": type(e).__name__}
            )
            return Result.fail(f"Failed to read template workbook: {str(e)}", status_code=HTTPStatus.BAD_REQUEST)

        if not workbook.worksheets:
            return Result.fail("Template workbook has no worksheet", status_code=HTTPStatus.BAD_REQUEST)
        return Result.ok((workbook, values_workbook))

    @staticmethod
    def _serialize(workbook: Workbook) -> Result[bytes]:
        buffer = io.BytesIO()
        try:
            workbook.save(buffer)
        except Exception as e:
            logger.error("Failed to write compiled workbook", extra={"error": str(e), "error_type": type(e).__name__})
            return Result.server_error(f"Failed to write compiled workbook: {str(e)}")
        return Result.ok(buffer.getvalue())

    @staticmethod
    def _collect_stats(index: ImportIndex, populate_stats: PopulateStats) -> CompileStats:
        return CompileStats(
            indexed_skus=len(index),
            import_rows_skipped=index.rows_skipped,
            duplicate_skus=index.duplicate_skus,
            template_rows_scanned=populate_stats.rows_scanned,
            template_rows_skipped=populate_stats.rows_skipped,
            template_rows_matched=populate_stats.rows_matched,
            cells_written=populate_stats.cells_written,
        )
