import logging
import uuid
from datetime import datetime
from typing import List, Optional

from .errors import BatchStateError, NotFound
from .schema.batch_models import Batch, BatchEvent, BatchState
from .schema.models import ProcessingOutcome
from .storage import BatchStore

logger = logging.getLogger(__name__)


class BatchTracker:
    """
    Contadores e outcomes por lote.

    Garantias:
    - processed_files/error_files só crescem e a soma nunca passa de total_files
    - cada arquivo (file_index) gera no máximo um outcome
    - o lote vira "completed" na mesma escrita em que o último outcome chega
    """

    def __init__(self, store: BatchStore):
        self.store = store

    def create_batch(self, total_files: int, batch_id: Optional[str] = None) -> Batch:
        if total_files < 0:
            raise BatchStateError("total_files não pode ser negativo")

        batch = Batch(id=batch_id or uuid.uuid4().hex, total_files=total_files)
        if total_files == 0:
            batch = batch.model_copy(update={"status": "completed", "completed_at": datetime.now()})

        event = BatchEvent(stage="SUBMIT", status="SUCCESS", details={"total_files": total_files})
        self.store.put(BatchState(batch=batch, events=(event,)))

        logger.info("Lote %s criado com %d arquivo(s)", batch.id, total_files)
        return batch

    def _state(self, batch_id: str) -> BatchState:
        state = self.store.get(batch_id)
        if state is None:
            raise NotFound(f"Lote não encontrado: {batch_id}")
        return state

    def get_batch(self, batch_id: str) -> Batch:
        return self._state(batch_id).batch

    def list_outcomes(self, batch_id: str) -> List[ProcessingOutcome]:
        return sorted(self._state(batch_id).outcomes, key=lambda o: o.file_index)

    def list_events(self, batch_id: str) -> List[BatchEvent]:
        return list(self._state(batch_id).events)

    def record_outcome(self, batch_id: str, outcome: ProcessingOutcome) -> Batch:
        """
        Registra o outcome de um arquivo e atualiza contadores na mesma escrita.

        Raises:
            NotFound: lote desconhecido
            BatchStateError: lote já concluído, índice fora da faixa ou repetido
        """
        def mutate(state: BatchState) -> BatchState:
            batch = state.batch
            if batch.status == "completed":
                raise BatchStateError(f"Lote {batch.id} já concluído")
            if not (0 <= outcome.file_index < batch.total_files):
                raise BatchStateError(
                    f"Índice de arquivo fora da faixa: {outcome.file_index} (total {batch.total_files})"
                )
            if any(o.file_index == outcome.file_index for o in state.outcomes):
                raise BatchStateError(f"Arquivo {outcome.file_index} já registrado no lote {batch.id}")

            updates = {}
            if outcome.status == "processed":
                updates["processed_files"] = batch.processed_files + 1
            else:
                updates["error_files"] = batch.error_files + 1

            events = list(state.events)
            events.append(BatchEvent(
                stage="EXTRACT",
                status="SUCCESS" if outcome.status == "processed" else "FAILURE",
                file_name=outcome.file_name,
                details={"error": outcome.error_message} if outcome.error_message else {},
            ))

            new_batch = batch.model_copy(update=updates)
            if new_batch.attempted_files == new_batch.total_files:
                new_batch = new_batch.model_copy(update={"status": "completed", "completed_at": datetime.now()})
                events.append(_finalize_event(new_batch))

            return BatchState(
                batch=new_batch,
                outcomes=state.outcomes + (outcome,),
                events=tuple(events),
            )

        updated = self.store.update(batch_id, mutate)
        if updated.batch.status == "completed":
            logger.info(
                "Lote %s concluído: %d processado(s), %d erro(s)",
                batch_id, updated.batch.processed_files, updated.batch.error_files,
            )
        return updated.batch

    def finalize(self, batch_id: str) -> Batch:
        """
        Marca o lote como concluído. Idempotente.

        Raises:
            BatchStateError: ainda há arquivos sem outcome
        """
        def mutate(state: BatchState) -> BatchState:
            batch = state.batch
            if batch.status == "completed":
                return state
            if batch.attempted_files != batch.total_files:
                raise BatchStateError(
                    f"Lote {batch.id} incompleto: {batch.attempted_files}/{batch.total_files} arquivo(s)"
                )
            new_batch = batch.model_copy(update={"status": "completed", "completed_at": datetime.now()})
            return state.model_copy(update={
                "batch": new_batch,
                "events": state.events + (_finalize_event(new_batch),),
            })

        return self.store.update(batch_id, mutate).batch


def _finalize_event(batch: Batch) -> BatchEvent:
    return BatchEvent(
        stage="FINALIZE",
        status="SUCCESS",
        details={
            "processed_files": batch.processed_files,
            "error_files": batch.error_files,
        },
    )
