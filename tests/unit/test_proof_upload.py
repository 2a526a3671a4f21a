"""Unit tests for reading multipart proof images"""

import io

import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from good4it_gateway.api.dependencies import read_proof
from good4it_gateway.config import settings
from good4it_gateway.domain.exceptions import ValidationError

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def upload(content: bytes, size=None, mime_type: str = "image/png") -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        size=size,
        filename="receipt.png",
        headers=Headers({"content-type": mime_type}),
    )


async def test_reads_valid_image():
    proof = await read_proof(upload(PNG, size=len(PNG)))

    assert proof.content == PNG
    assert proof.mime_type == "image/png"


async def test_declared_size_rejected_before_reading():
    # the body itself is small; only the declared size is over the limit
    with pytest.raises(ValidationError) as exc_info:
        await read_proof(upload(PNG, size=settings.proof_max_bytes + 1))
    assert exc_info.value.code == "PROOF_TOO_LARGE"


async def test_unknown_size_read_is_bounded(monkeypatch):
    monkeypatch.setattr(settings, "proof_max_bytes", 16)
    oversized = upload(PNG)

    with pytest.raises(ValidationError) as exc_info:
        await read_proof(oversized)
    assert exc_info.value.code == "PROOF_TOO_LARGE"
    # only limit + 1 bytes were pulled from the stream
    assert oversized.file.tell() == 17


async def test_missing_file_is_no_proof():
    assert await read_proof(None) is None
