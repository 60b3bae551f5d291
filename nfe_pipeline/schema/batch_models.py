from typing import List, Optional, Dict, Literal, Any, Tuple
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from .models import ProcessingOutcome

class BatchEvent(BaseModel):
    """
    Evento imutável ocorrido durante o processamento de um lote.
    Usado para auditoria e observabilidade.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=datetime.now)
    stage: Literal["SUBMIT", "EXTRACT", "FINALIZE"]
    status: Literal["SUCCESS", "FAILURE"]
    file_name: Optional[str] = None
    # Details deve ser flat e serializável
    details: Dict[str, Any] = Field(default_factory=dict)

class Batch(BaseModel):
    """
    Agregado de progresso do lote.
    processed_files + error_files <= total_files, sempre.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    status: Literal["processing", "completed"] = "processing"
    total_files: int = Field(ge=0)
    processed_files: int = 0
    error_files: int = 0
    created_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def attempted_files(self) -> int:
        return self.processed_files + self.error_files

class BatchState(BaseModel):
    """
    Snapshot guardado no store: agregado + outcomes + trilha de auditoria.
    Substituído por inteiro a cada atualização, nunca mutado.
    """
    model_config = ConfigDict(frozen=True)

    batch: Batch
    outcomes: Tuple[ProcessingOutcome, ...] = ()
    events: Tuple[BatchEvent, ...] = ()
