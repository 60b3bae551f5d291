"""
FastAPI dependency injection utilities.
Handles upload reading, size limits and orchestrator lookup.
"""
from typing import Annotated, List, Optional, Tuple
from fastapi import File, HTTPException, Request, UploadFile, status
from nfe_config import settings
from nfe_pipeline.orchestrator import BatchOrchestrator


async def read_xml_uploads(
    files: Annotated[Optional[List[UploadFile]], File(description="NF-e XML files")] = None
) -> List[Tuple[str, bytes]]:
    """
    Read uploaded XML files into (filename, bytes) pairs.
    
    Args:
        files: Uploaded files from multipart form
        
    Returns:
        List of (filename, content); empty when nothing was sent
        
    Raises:
        HTTPException: If a file exceeds the size limit
    """
    uploads: List[Tuple[str, bytes]] = []
    for file in files or []:
        content = await file.read()
        
        # Check size
        if len(content) > settings.max_upload_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large: {file.filename}. Max size: {settings.API_MAX_UPLOAD_SIZE_MB}MB"
            )
        
        uploads.append((file.filename or "", content))
    
    return uploads


def get_orchestrator(request: Request) -> BatchOrchestrator:
    """Process-wide orchestrator created at startup."""
    return request.app.state.orchestrator
