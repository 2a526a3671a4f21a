"""Local filesystem storage for proof-of-payment images"""

import os
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from good4it_gateway.config import settings
from good4it_gateway.domain.exceptions import ProofStorageError
from good4it_gateway.domain.models import PendingProof, ProofReference
from good4it_gateway.infrastructure.database.repositories import ProofRepository
from good4it_gateway.utils.date_utils import utc_now

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/heic": ".heic",
}


class LocalProofStorage:
    """Writes proof images under ``upload_dir`` and records their metadata"""

    def __init__(self, upload_dir: Optional[str] = None):
        self.upload_dir = upload_dir or settings.proof_upload_dir

    def store_proof(
        self,
        db: Session,
        transaction_id: uuid.UUID,
        uploaded_by: str,
        proof: PendingProof,
    ) -> ProofReference:
        """
        Persist the image and its metadata row in the caller's session.

        The row is flushed, not committed, so a later failure rolls it back;
        the file itself is removed if the row cannot be written.

        Raises:
            ProofStorageError: File could not be written
        """
        proof_id = uuid.uuid4()
        upload = proof.upload
        file_name = f"proof-{proof.proof_type.value}-{proof_id}{_EXTENSIONS.get(upload.mime_type, '')}"
        path = os.path.join(self.upload_dir, file_name)

        try:
            os.makedirs(self.upload_dir, exist_ok=True)
            with open(path, "wb") as f:
                f.write(upload.content)
        except OSError as e:
            raise ProofStorageError(f"Failed to store proof: {e}") from e

        reference = ProofReference(
            id=proof_id,
            transaction_id=transaction_id,
            uploaded_by=uploaded_by,
            proof_type=proof.proof_type,
            file_name=upload.filename or file_name,
            size_bytes=upload.size_bytes,
            mime_type=upload.mime_type,
            uploaded_at=utc_now(),
        )
        try:
            return ProofRepository(db).add(reference, path)
        except Exception:
            os.remove(path)
            raise
