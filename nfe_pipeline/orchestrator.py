import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from nfe_config import Settings, settings as default_settings

from .core.extractor import extract_fiscal_record
from .core.spreadsheet import XLSX_MEDIA_TYPE, serialize
from .core.templates import COLUMN_CATALOG, RequestedColumn, default_template, resolve_template
from .errors import EmptyInput, ExtractionError, FileTooLarge, InvalidUpload, NoProcessedRecords, TooManyFiles
from .schema.batch_models import Batch
from .schema.models import FiscalRecord, ProcessingOutcome, Template
from .storage import BatchStore, MemoryBatchStore
from .tracker import BatchTracker

logger = logging.getLogger(__name__)

UploadedFile = Tuple[str, bytes]
Extractor = Callable[[bytes, str], FiscalRecord]


@dataclass(frozen=True)
class ExportResult:
    filename: str
    content: bytes
    template: Template
    row_count: int
    media_type: str = XLSX_MEDIA_TYPE


def sanitize_filename_part(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9]", "_", value)


class BatchOrchestrator:
    """
    Coordenador dos lotes de NF-e.
    Une Extractor -> Tracker -> Template -> Planilha.

    Arquivos de um lote são processados em sequência, um outcome por arquivo,
    e falha de arquivo nunca aborta o lote.
    """

    def __init__(
        self,
        tracker: Optional[BatchTracker] = None,
        config: Settings = default_settings,
        extractor: Extractor = extract_fiscal_record,
    ):
        self.tracker = tracker or BatchTracker(MemoryBatchStore())
        self.config = config
        self.extractor = extractor

    @classmethod
    def with_store(cls, store: BatchStore, config: Settings = default_settings) -> "BatchOrchestrator":
        return cls(BatchTracker(store), config)

    # ====================================================
    # SUBMIT
    # ====================================================
    def validate_submission(self, files: Sequence[UploadedFile]) -> None:
        """
        Raises:
            EmptyInput: lista vazia
            TooManyFiles: acima de API_MAX_FILES
            InvalidUpload: extensão não permitida (lista os arquivos)
            FileTooLarge: arquivo acima do limite
        """
        if not files:
            raise EmptyInput("Nenhum arquivo enviado")

        if len(files) > self.config.API_MAX_FILES:
            raise TooManyFiles(
                f"Máximo de {self.config.API_MAX_FILES} arquivos por lote (recebido {len(files)})"
            )

        allowed = tuple(ext.lower() for ext in self.config.ALLOWED_EXTENSIONS)
        invalid = [name for name, _ in files if not (name or "").lower().endswith(allowed)]
        if invalid:
            raise InvalidUpload(
                f"Apenas arquivos {', '.join(allowed)} são permitidos",
                invalid_files=invalid,
            )

        oversized = [name for name, content in files if len(content) > self.config.max_upload_size_bytes]
        if oversized:
            raise FileTooLarge(
                f"Arquivo(s) acima de {self.config.API_MAX_UPLOAD_SIZE_MB}MB",
                invalid_files=oversized,
            )

    def submit(self, files: Sequence[UploadedFile]) -> Batch:
        self.validate_submission(files)
        return self.tracker.create_batch(total_files=len(files))

    # ====================================================
    # PROCESS
    # ====================================================
    def process_file(self, index: int, file_name: str, content: bytes) -> ProcessingOutcome:
        start = time.time()
        try:
            record = self.extractor(content, file_name)
        except ExtractionError as e:
            logger.warning("Falha em %s: %s", file_name, e.message)
            return ProcessingOutcome(
                file_index=index,
                file_name=file_name,
                status="error",
                error_message=e.message,
            )

        logger.info("Arquivo %s processado em %.4fs", file_name, time.time() - start)
        return ProcessingOutcome(
            file_index=index,
            file_name=file_name,
            status="processed",
            record=record,
        )

    def process_batch(self, batch_id: str, files: Sequence[UploadedFile]) -> Batch:
        """
        Processa os arquivos em ordem. Contadores são gravados após cada arquivo.
        """
        batch = self.tracker.get_batch(batch_id)
        for index, (file_name, content) in enumerate(files):
            outcome = self.process_file(index, file_name, content)
            batch = self.tracker.record_outcome(batch_id, outcome)
        return self.tracker.finalize(batch.id)

    def run(self, files: Sequence[UploadedFile]) -> Batch:
        """Submit + process síncronos."""
        batch = self.submit(files)
        return self.process_batch(batch.id, files)

    # ====================================================
    # QUERY
    # ====================================================
    def get_batch(self, batch_id: str) -> Batch:
        return self.tracker.get_batch(batch_id)

    def list_outcomes(self, batch_id: str) -> List[ProcessingOutcome]:
        return self.tracker.list_outcomes(batch_id)

    def list_events(self, batch_id: str):
        return self.tracker.list_events(batch_id)

    def processed_records(self, batch_id: str) -> List[FiscalRecord]:
        return [
            o.record for o in self.tracker.list_outcomes(batch_id)
            if o.status == "processed" and o.record is not None
        ]

    # ====================================================
    # EXPORT
    # ====================================================
    def default_template(self) -> Template:
        return default_template(COLUMN_CATALOG, self.config.DEFAULT_TEMPLATE_SIZE)

    def resolve_template(
        self,
        columns: Optional[Sequence[RequestedColumn]],
        name: Optional[str] = None,
    ) -> Template:
        return resolve_template(
            columns,
            COLUMN_CATALOG,
            name=name or "Personalizado",
            unknown_policy=self.config.UNKNOWN_COLUMN_POLICY,
            default_size=self.config.DEFAULT_TEMPLATE_SIZE,
        )

    def export(
        self,
        batch_id: str,
        columns: Optional[Sequence[RequestedColumn]] = None,
        template_name: Optional[str] = None,
    ) -> ExportResult:
        """
        Raises:
            NotFound: lote desconhecido
            NoProcessedRecords: nenhuma nota processada com sucesso
            InvalidTemplate: template rejeitado pelo resolvedor
        """
        records = self.processed_records(batch_id)
        if not records:
            raise NoProcessedRecords("Nenhuma nota fiscal processada encontrada")

        template = self.resolve_template(columns, template_name)
        content = serialize(records, template, sheet_name=self.config.EXPORT_SHEET_NAME)

        filename = "{}_{}_{}.xlsx".format(
            self.config.EXPORT_FILENAME_PREFIX,
            sanitize_filename_part(batch_id),
            sanitize_filename_part(template.name),
        )
        logger.info("Exportação do lote %s: %s (%d linhas)", batch_id, filename, len(records))
        return ExportResult(filename=filename, content=content, template=template, row_count=len(records))
