"""Dependency injection for FastAPI endpoints"""

from typing import Optional

from fastapi import Header, HTTPException, Request, UploadFile

from good4it_gateway.config import settings
from good4it_gateway.domain.models import ProofUpload
from good4it_gateway.domain.proofs import check_proof_size, validate_proof_upload
from good4it_gateway.infrastructure.clients.notifications import NotificationClient
from good4it_gateway.infrastructure.storage.proofs import LocalProofStorage


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> str:
    """Caller identity, established by the upstream auth layer"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id.strip()


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()


def get_proof_storage() -> LocalProofStorage:
    """Provide proof storage instance"""
    return LocalProofStorage()


async def read_proof(upload: Optional[UploadFile]) -> Optional[ProofUpload]:
    """Read and validate a multipart proof image before any entity is loaded"""
    if upload is None or not upload.filename:
        return None
    max_bytes = settings.proof_max_bytes
    if upload.size is not None:
        check_proof_size(upload.size, max_bytes)
    # one byte past the limit is enough to reject an upload of unknown size
    proof = ProofUpload(
        filename=upload.filename,
        mime_type=(upload.content_type or "").lower(),
        content=await upload.read(max_bytes + 1),
    )
    return validate_proof_upload(proof, max_bytes)
