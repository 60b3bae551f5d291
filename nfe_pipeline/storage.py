"""
Armazenamento de estado dos lotes.

BatchStore é a interface mínima (put/get/update por id). A implementação em
memória serializa escritas com um lock e só guarda snapshots imutáveis, então
leitores concorrentes nunca veem contadores pela metade.
"""
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

from .errors import NotFound
from .schema.batch_models import BatchState


class BatchStore(ABC):

    @abstractmethod
    def put(self, state: BatchState) -> None:
        ...

    @abstractmethod
    def get(self, batch_id: str) -> Optional[BatchState]:
        ...

    @abstractmethod
    def update(self, batch_id: str, mutate: Callable[[BatchState], BatchState]) -> BatchState:
        """
        Aplica `mutate` atomicamente. Se `mutate` levantar, nada é gravado.

        Raises:
            NotFound: id desconhecido
        """
        ...


class MemoryBatchStore(BatchStore):
    """Store de processo, criado uma vez na inicialização. Sem persistência."""

    def __init__(self):
        self._states: Dict[str, BatchState] = {}
        self._lock = threading.Lock()

    def put(self, state: BatchState) -> None:
        with self._lock:
            self._states[state.batch.id] = state

    def get(self, batch_id: str) -> Optional[BatchState]:
        with self._lock:
            return self._states.get(batch_id)

    def update(self, batch_id: str, mutate: Callable[[BatchState], BatchState]) -> BatchState:
        with self._lock:
            current = self._states.get(batch_id)
            if current is None:
                raise NotFound(f"Lote não encontrado: {batch_id}")
            updated = mutate(current)
            self._states[batch_id] = updated
            return updated
