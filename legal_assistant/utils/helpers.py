"""
Common utility functions and helpers.
"""
import logging
import os
import unicodedata
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence, Tuple
from urllib.parse import quote

import aiofiles
from fastapi import UploadFile

from legal_assistant.exceptions import UnsupportedFormatError, UserInputError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def upload_extension(filename: str) -> str:
    """``"Lease.PDF"`` -> ``".pdf"``."""
    return Path(filename or "").suffix.lower()


def validate_upload(upload: Optional[UploadFile], allowed: Optional[Sequence[str]] = None) -> str:
    """
    Check that a file was sent and, when *allowed* is given, that its
    extension is one of them.  Returns the lower-case extension with dot.
    """
    if upload is None or not upload.filename:
        raise UserInputError("No file uploaded")

    file_ext = upload_extension(upload.filename)
    if allowed is not None and file_ext not in allowed:
        raise UnsupportedFormatError(
            f"Invalid file type '{file_ext or upload.filename}'. "
            "Only PDF, DOC, DOCX, and TXT files are allowed."
        )
    return file_ext


def safe_remove(path: str) -> None:
    """Remove a file, logging instead of raising if it is already gone."""
    try:
        os.remove(path)
    except OSError as exc:
        logger.warning("Could not remove temporary file %s: %s", path, exc)


async def save_upload(
    file: UploadFile,
    upload_dir: str,
    max_size: int,
) -> Tuple[str, int]:
    """
    Stream an upload to *upload_dir* under a UUID name.

    Returns:
        (file_path, size_in_bytes).  The caller owns the file and must remove it.

    Raises:
        UserInputError: the upload is larger than *max_size*.  The partial
            file is removed before raising.
    """
    os.makedirs(upload_dir, exist_ok=True)
    file_path = os.path.join(upload_dir, f"{uuid.uuid4().hex}{upload_extension(file.filename)}")

    size = 0
    try:
        async with aiofiles.open(file_path, "wb") as out:
            while True:
                chunk = await file.read(_CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > max_size:
                    raise UserInputError(
                        f"File too large. Maximum size: {max_size // (1024 * 1024)}MB"
                    )
                await out.write(chunk)
    except BaseException:
        safe_remove(file_path)
        raise

    return file_path, size


def content_disposition(file_name: str) -> str:
    """
    ``attachment`` header value for any file name.

    Header values are sent as latin-1, so ``filename`` carries an ASCII
    rendering and ``filename*`` (RFC 5987) the exact UTF-8 name.
    """
    ascii_name = unicodedata.normalize("NFKD", file_name).encode("ascii", "ignore").decode("ascii")
    ascii_name = "".join(
        "_" if ch in '"\\' or not ch.isprintable() else ch for ch in ascii_name
    )
    stem, dot, ext = ascii_name.rpartition(".")
    if not dot:
        stem, ext = ascii_name, ""
    if not stem.strip("_ ."):
        ascii_name = f"document.{ext}" if ext else "document"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(file_name, safe='')}"
