"""
Text extraction for uploaded legal documents.

Supports PDF (PyMuPDF, with optional Tesseract OCR for image-only pages),
DOCX (python-docx, paragraphs followed by tables) and plain UTF-8 text.
Returns plain text only; the caller must reject a request when extraction
fails instead of analysing an empty document.
"""
from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import List, Optional

import fitz  # PyMuPDF
import pytesseract
from docx import Document as DocxDocument
from PIL import Image

from legal_assistant.config import settings
from legal_assistant.exceptions import ExtractionError, UnsupportedFormatError

logger = logging.getLogger(__name__)


class DocumentParser:
    """Extracts plain text from PDF, DOCX and TXT files."""

    SUPPORTED_TYPES = ("pdf", "docx", "txt")

    def __init__(self, ocr_enabled: Optional[bool] = None) -> None:
        self.ocr_enabled = settings.OCR_ENABLED if ocr_enabled is None else ocr_enabled
        if self.ocr_enabled and settings.TESSERACT_CMD:
            pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD

    async def extract_text(self, file_path: str, file_type: str) -> str:
        """
        Extract the text of a document.

        Args:
            file_path: Path to the file on disk.
            file_type: Declared extension with or without dot, e.g. ".pdf" or "TXT".

        Returns:
            The extracted text, stripped of leading/trailing whitespace.

        Raises:
            UnsupportedFormatError: the declared type is not pdf/docx/txt.
            ExtractionError:        the file is unreadable or contains no text.
        """
        ft = normalize_file_type(file_type)
        if ft == "pdf":
            text = self._extract_pdf(file_path)
        elif ft == "docx":
            text = self._extract_docx(file_path)
        elif ft == "txt":
            text = self._extract_txt(file_path)
        elif ft == "doc":
            raise UnsupportedFormatError(
                "Legacy .doc files cannot be read. Please save the document as DOCX or PDF."
            )
        else:
            raise UnsupportedFormatError(f"Unsupported file type: {file_type!r}")

        if not text.strip():
            raise ExtractionError("Could not extract text from document")

        logger.info(
            "Extracted %d characters from %s (%s)", len(text), Path(file_path).name, ft
        )
        return text.strip()

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    def _extract_pdf(self, file_path: str) -> str:
        try:
            doc = fitz.open(file_path)
        except Exception as exc:
            raise ExtractionError(f"Cannot open PDF file: {exc}") from exc

        try:
            if doc.needs_pass:
                raise ExtractionError(
                    "PDF is password-protected. Please provide an unlocked copy."
                )

            page_texts: List[str] = []
            for page in doc:
                page_text = page.get_text("text").strip()
                if not page_text and self.ocr_enabled:
                    page_text = self._ocr_page(page).strip()
                if page_text:
                    page_texts.append(page_text)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"Cannot read PDF file: {exc}") from exc
        finally:
            doc.close()

        return "\n\n".join(page_texts)

    def _ocr_page(self, page: fitz.Page) -> str:
        """Render an entire page at 2x scale and run Tesseract OCR."""
        try:
            pix = page.get_pixmap(matrix=fitz.Matrix(2, 2))
            img = Image.open(io.BytesIO(pix.tobytes("png")))
            return pytesseract.image_to_string(img)
        except Exception as exc:
            logger.warning("Full-page OCR failed on page %d: %s", page.number + 1, exc)
            return ""

    # ------------------------------------------------------------------
    # DOCX
    # ------------------------------------------------------------------

    def _extract_docx(self, file_path: str) -> str:
        try:
            doc = DocxDocument(file_path)
        except Exception as exc:
            raise ExtractionError(f"Cannot open DOCX file: {exc}") from exc

        parts: List[str] = [p.text.strip() for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                non_empty = [c for c in cells if c]
                if non_empty:
                    parts.append(" | ".join(non_empty))

        return "\n".join(parts)

    # ------------------------------------------------------------------
    # TXT
    # ------------------------------------------------------------------

    def _extract_txt(self, file_path: str) -> str:
        try:
            with open(file_path, "r", encoding="utf-8-sig") as fh:
                return fh.read()
        except UnicodeDecodeError as exc:
            raise ExtractionError(f"Text file is not valid UTF-8: {exc}") from exc
        except OSError as exc:
            raise ExtractionError(f"Cannot read text file: {exc}") from exc


def normalize_file_type(file_type: str) -> str:
    """``".PDF"`` -> ``"pdf"``."""
    return (file_type or "").strip().lower().lstrip(".")
