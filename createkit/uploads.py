"""
Helpers for in-memory file uploads: size limits, image sniffing and PDF text.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

from fastapi import UploadFile
from pdfminer.high_level import extract_text
from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from createkit.errors import BadRequest

logger = logging.getLogger(__name__)


def read_upload(
    upload: Optional[UploadFile],
    *,
    max_bytes: int,
    missing_message: str,
    label: str = "File",
) -> bytes:
    if upload is None or not upload.filename:
        raise BadRequest(missing_message)
    # One byte past the limit marks an oversize file.
    data = upload.file.read(max_bytes + 1)
    if len(data) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise BadRequest(f"{label} file size exceeds {limit_mb}MB limit.")
    if not data:
        raise BadRequest(missing_message)
    return data


def image_content_type(data: bytes) -> str:
    """Return the MIME type of an image payload, or raise BadRequest."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            image_format = img.format or "PNG"
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
    ) as exc:
        raise BadRequest("Uploaded file is not a valid image.") from exc
    return Image.MIME.get(image_format, "application/octet-stream")


def extract_pdf_text(pdf_bytes: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
    except (PdfReadError, ValueError) as exc:
        logger.warning("pypdf could not read upload: %s", exc)
        text = ""

    if text.strip():
        return text

    try:
        return extract_text(io.BytesIO(pdf_bytes)) or ""
    except Exception:
        logger.warning("pdfminer could not read upload", exc_info=True)
        return ""
