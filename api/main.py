"""
FastAPI application entry point.
Handles NF-e XML batch ingestion and spreadsheet export:
- API reads uploads and dispatches
- Orchestrator makes all business decisions
- Processing runs after the response, one file at a time
"""
import logging
from typing import Annotated, List, Tuple
from fastapi import BackgroundTasks, Depends, FastAPI, Response, status
from fastapi.responses import JSONResponse

from nfe_config import settings
from nfe_pipeline.core.templates import COLUMN_CATALOG
from nfe_pipeline.errors import InvalidUpload, NfeExportError
from nfe_pipeline.orchestrator import BatchOrchestrator, ExportResult
from nfe_pipeline.storage import MemoryBatchStore
from api.schemas import (
    BatchResponse,
    EventResponse,
    HealthResponse,
    OutcomeResponse,
    TemplateRequest,
    TemplateResponse,
    UploadResponse,
)
from api.dependencies import get_orchestrator, read_xml_uploads

logging.basicConfig(level=settings.LOG_LEVEL, format=settings.LOG_FORMAT)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="NF-e XML batch extraction and configurable Excel export",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# Memory-only store: lives for the whole process, no teardown
app.state.orchestrator = BatchOrchestrator.with_store(MemoryBatchStore(), settings)

Orchestrator = Annotated[BatchOrchestrator, Depends(get_orchestrator)]


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    Returns service status and basic diagnostics.
    """
    return HealthResponse(
        status="healthy",
        version=settings.APP_VERSION,
        checks={"api": True, "store": True},
    )


@app.post("/api/upload", response_model=UploadResponse, status_code=status.HTTP_200_OK, tags=["Processing"])
def upload_xml_batch(
    files: Annotated[List[Tuple[str, bytes]], Depends(read_xml_uploads)],
    background_tasks: BackgroundTasks,
    orchestrator: Orchestrator,
):
    """
    Submit a batch of NF-e XML files.
    
    **Request Format (multipart/form-data):**
    - `files`: one or more `.xml` files (max 50, 10MB each)
    
    **Example:**
    ```bash
    curl -X POST http://localhost:8000/api/upload \\
      -F "files=@nota1.xml" -F "files=@nota2.xml"
    ```
    
    **Flow:**
    1. Validate count, extension and size
    2. Create batch (status `processing`)
    3. Return 200 with `batch_id`
    4. Extract files sequentially in the background
    """
    batch = orchestrator.submit(files)
    background_tasks.add_task(orchestrator.process_batch, batch.id, files)
    return UploadResponse(batch_id=batch.id, total_files=batch.total_files, status=batch.status)


@app.get("/api/batches/{batch_id}", response_model=BatchResponse, tags=["Batches"])
def get_batch(batch_id: str, orchestrator: Orchestrator):
    return BatchResponse.from_batch(orchestrator.get_batch(batch_id))


@app.get("/api/batches/{batch_id}/events", response_model=List[EventResponse], tags=["Batches"])
def get_batch_events(batch_id: str, orchestrator: Orchestrator):
    """Audit trail of the batch. READ-ONLY."""
    return [EventResponse.from_event(e) for e in orchestrator.list_events(batch_id)]


@app.get("/api/invoices/batch/{batch_id}", response_model=List[OutcomeResponse], tags=["Batches"])
def list_batch_invoices(batch_id: str, orchestrator: Orchestrator):
    return [OutcomeResponse.from_outcome(o) for o in orchestrator.list_outcomes(batch_id)]


def _excel_response(result: ExportResult) -> Response:
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


@app.get("/api/invoices/batch/{batch_id}/excel", tags=["Export"])
def download_excel_default(batch_id: str, orchestrator: Orchestrator):
    """Export processed invoices with the default template."""
    return _excel_response(orchestrator.export(batch_id))


@app.post("/api/invoices/batch/{batch_id}/excel", tags=["Export"])
def download_excel_custom(batch_id: str, template: TemplateRequest, orchestrator: Orchestrator):
    """Export processed invoices with a user-defined column template."""
    return _excel_response(orchestrator.export(batch_id, template.columns, template.name))


@app.get("/api/templates/columns", response_model=TemplateResponse, tags=["Export"])
def list_columns():
    """Full column catalog."""
    return TemplateResponse(
        id="catalog",
        name="Catálogo",
        description="Todas as colunas disponíveis",
        columns=COLUMN_CATALOG,
    )


@app.get("/api/templates/default", response_model=TemplateResponse, tags=["Export"])
def get_default_template(orchestrator: Orchestrator):
    return TemplateResponse(**orchestrator.default_template().model_dump())


@app.exception_handler(NfeExportError)
async def pipeline_exception_handler(request, exc: NfeExportError):
    """
    Typed pipeline failures map to their own status code.
    """
    content = {"detail": exc.message}
    if isinstance(exc, InvalidUpload) and exc.invalid_files:
        content["invalid_files"] = exc.invalid_files
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Global exception handler for unexpected errors.
    """
    logger.exception("Erro inesperado em %s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.DEBUG else "An unexpected error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG
    )
