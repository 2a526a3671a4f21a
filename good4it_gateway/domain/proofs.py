"""Proof-of-payment upload validation"""

from typing import Optional

from good4it_gateway.domain.exceptions import ValidationError
from good4it_gateway.domain.models import PendingProof, ProofType, ProofUpload

ALLOWED_PROOF_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/heic"})
MAX_PROOF_BYTES = 10 * 1024 * 1024  # 10MB


def validate_proof_upload(upload: Optional[ProofUpload], max_bytes: int = MAX_PROOF_BYTES) -> Optional[ProofUpload]:
    """
    Check an optional proof image before any entity is loaded.

    Raises:
        ValidationError: Unsupported mime type, empty file, or file over ``max_bytes``
    """
    if upload is None:
        return None
    if upload.mime_type not in ALLOWED_PROOF_MIME_TYPES:
        raise ValidationError("Only image files (JPEG, PNG, HEIC) are allowed", code="INVALID_PROOF_TYPE")
    if upload.size_bytes == 0:
        raise ValidationError("Proof file is empty", code="EMPTY_PROOF")
    check_proof_size(upload.size_bytes, max_bytes)
    return upload


def check_proof_size(size_bytes: int, max_bytes: int = MAX_PROOF_BYTES) -> None:
    if size_bytes > max_bytes:
        raise ValidationError(
            f"File size too large. Maximum size is {max_bytes // (1024 * 1024)}MB.",
            code="PROOF_TOO_LARGE",
        )


def require_proof(upload: Optional[ProofUpload], proof_type: ProofType) -> PendingProof:
    if upload is None:
        raise ValidationError("Payment proof is required", code="PROOF_REQUIRED")
    return PendingProof(proof_type=proof_type, upload=upload)


def optional_proof(upload: Optional[ProofUpload], proof_type: ProofType) -> Optional[PendingProof]:
    if upload is None:
        return None
    return PendingProof(proof_type=proof_type, upload=upload)
