"""
Pydantic schemas for API contracts.
Separates transport payloads from pipeline models.
"""
from typing import Optional, Literal, Dict, Any, List, Union
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from nfe_pipeline.schema.batch_models import Batch, BatchEvent
from nfe_pipeline.schema.models import ColumnRequest, ColumnSpec, FiscalRecord, ProcessingOutcome


class UploadResponse(BaseModel):
    """
    Response for an accepted batch upload.
    """
    batch_id: str
    total_files: int
    status: Literal["processing", "completed"]
    timestamp: datetime = Field(default_factory=datetime.now)


class BatchResponse(BaseModel):
    id: str
    status: Literal["processing", "completed"]
    total_files: int
    processed_files: int
    error_files: int
    created_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_batch(cls, batch: Batch) -> "BatchResponse":
        return cls(**batch.model_dump())


class OutcomeResponse(BaseModel):
    """
    One row per submitted file. Error rows keep numero_nf/chave_nf as "".
    """
    file_index: int
    file_name: str
    status: Literal["processed", "error"]
    error_message: Optional[str] = None
    numero_nf: str = ""
    chave_nf: str = ""
    record: Optional[FiscalRecord] = None

    @classmethod
    def from_outcome(cls, outcome: ProcessingOutcome) -> "OutcomeResponse":
        return cls(
            file_index=outcome.file_index,
            file_name=outcome.file_name,
            status=outcome.status,
            error_message=outcome.error_message,
            numero_nf=outcome.numero_nf,
            chave_nf=outcome.chave_nf,
            record=outcome.record,
        )


class EventResponse(BaseModel):
    timestamp: datetime
    stage: Literal["SUBMIT", "EXTRACT", "FINALIZE"]
    status: Literal["SUCCESS", "FAILURE"]
    file_name: Optional[str] = None
    details: Dict[str, Any]

    @classmethod
    def from_event(cls, event: BatchEvent) -> "EventResponse":
        return cls(**event.model_dump())


class TemplateRequest(BaseModel):
    """
    Export template chosen by the user.
    Columns may be plain ids or objects overriding label/width.
    """
    name: str = Field(default="Personalizado", min_length=1, max_length=100)
    columns: List[Union[str, ColumnRequest]] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class TemplateResponse(BaseModel):
    id: str
    name: str
    description: str
    columns: List[ColumnSpec]


class HealthResponse(BaseModel):
    """
    Health check response.
    """
    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    timestamp: datetime = Field(default_factory=datetime.now)
    checks: Dict[str, bool] = Field(default_factory=dict)
