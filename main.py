from fastapi import FastAPI, File, Form, UploadFile, status
import os
import shutil
import logging
import tempfile
from datetime import datetime
from typing import Optional
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware

from excel_compiler import CompileRequest, WorkbookCompiler, XLSX_MEDIA_TYPE
from utils.result import Result


# Create logs directory if it doesn't exist
log_dir = os.getenv("LOG_DIR") or os.path.join(os.path.dirname(os.path.abspath(__file__)), "logs")
os.makedirs(log_dir, exist_ok=True)

# Directory for per-request staging folders, system temp dir when unset
STAGING_DIR = os.getenv("STAGING_DIR") or None

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format=LOG_FORMAT
)
logger = logging.getLogger(__name__)

# Add file handler on the root logger so compiler modules log to file too
log_file_path = os.path.join(log_dir, f"app_{datetime.now().strftime('%Y%m%d')}.log")
file_handler = logging.FileHandler(log_file_path)
file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
logging.getLogger().addHandler(file_handler)


# Initialize FastAPI app with metadata
app = FastAPI(
    title="Template Compiler API",
    description="Fills a buying template workbook with size quantities from an import workbook",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # browser client is served separately
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Rows-Matched", "X-Import-Rows-Skipped"],
)


def stage_upload(upload: UploadFile, staging_dir: str, name: str) -> str:
    """
    Copy an uploaded workbook into the request staging directory.

    Args:
        upload: The uploaded file
        staging_dir: Directory owned by the current request
        name: File name to use inside the staging directory

    Returns:
        Path of the staged copy
    """
    staged_path = os.path.join(staging_dir, name)
    with open(staged_path, "wb") as buffer:
        shutil.copyfileobj(upload.file, buffer)
    logger.info(f"Staged {upload.filename} as {name}")
    return staged_path


def _is_missing(upload: Optional[UploadFile]) -> bool:
    return upload is None or not upload.filename


def compile_uploads(template: UploadFile, import_file: UploadFile, is_woman: bool) -> Result:
    """
    Stage both uploads and compile them.

    The staging directory is removed when this returns, whether the
    compilation succeeded, failed or raised.
    """
    with tempfile.TemporaryDirectory(prefix="template-compiler-", dir=STAGING_DIR) as staging_dir:
        try:
            template_path = stage_upload(template, staging_dir, "template.xlsx")
            import_path = stage_upload(import_file, staging_dir, "import.xlsx")
        except OSError as e:
            logger.exception(f"Failed to stage uploaded files: {str(e)}")
            return Result.server_error(f"Failed to stage uploaded files: {str(e)}")

        request = CompileRequest(
            template_path=template_path,
            import_path=import_path,
            is_woman=is_woman,
        )
        return WorkbookCompiler.compile(request)


# API Endpoints
@app.post(
    "/api/process-excel",
    tags=["Template Compilation"]
)
def process_excel(
    template: Optional[UploadFile] = File(None),
    import_file: Optional[UploadFile] = File(None, alias="import"),
    is_woman: bool = Form(False, alias="isWoman"),
):
    """
    Compile the template workbook with the quantities of the import workbook.

    Form fields:
        template: Template workbook (.xlsx)
        import: Import workbook (.xlsx)
        isWoman: "true" to write numeric sizes into the woman column range

    Returns:
        The compiled workbook as an attachment named
        TEMPLATE_<identifier>_compilato.xlsx, or a JSON error with no file.
    """
    logger.info(f"New compilation request (isWoman={is_woman})")

    if _is_missing(template) or _is_missing(import_file):
        logger.error("Template or import file missing from request")
        result = Result.invalid_input("Both template and import files are required.")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=result.to_dict())

    result = compile_uploads(template, import_file, is_woman)

    # Single exit point
    if result.is_failure():
        logger.error(f"Compilation failed: {result.error}")
        return JSONResponse(status_code=result.status_code.value, content=result.to_dict())

    compiled = result.data
    logger.info(f"Compilation succeeded: {compiled.filename}")
    return Response(
        content=compiled.content,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{compiled.filename}"',
            "X-Rows-Matched": str(compiled.stats.template_rows_matched),
            "X-Import-Rows-Skipped": str(compiled.stats.import_rows_skipped),
        },
    )


# Run the application if executed directly
if __name__ == "__main__":
    import uvicorn
    logger.info("Starting Template Compiler API in development mode.")
    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        reload=True
    )
