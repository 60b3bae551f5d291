"""
Taxonomia de erros do pipeline de NF-e.

Falhas de arquivo (ExtractionError/MalformedStructure) viram outcome de erro
e nunca derrubam o lote. As demais sobem para quem chamou.
`status_code` só é lido pela camada HTTP.
"""
from typing import List, Optional


class NfeExportError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ExtractionError(NfeExportError):
    """Falha ao extrair campos de um XML específico."""
    status_code = 422

    def __init__(self, message: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.file_name = file_name


class MalformedStructure(ExtractionError):
    """XML bem formado, mas sem os nós obrigatórios da NF-e."""


class InvalidTemplate(NfeExportError):
    status_code = 422


class NotFound(NfeExportError):
    status_code = 404


class EmptyInput(NfeExportError):
    status_code = 400


class NoProcessedRecords(EmptyInput):
    status_code = 404


class InvalidUpload(NfeExportError):
    status_code = 400

    def __init__(self, message: str, invalid_files: Optional[List[str]] = None):
        super().__init__(message)
        self.invalid_files = invalid_files or []


class TooManyFiles(InvalidUpload):
    pass


class BatchStateError(NfeExportError):
    """Violação das invariantes de contagem do lote."""
    status_code = 409


class FileTooLarge(InvalidUpload):
    status_code = 413
