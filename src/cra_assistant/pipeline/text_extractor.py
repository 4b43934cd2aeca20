"""
Turn an uploaded protocol or subject record into plain text for the gateway.

Strategy:
  - Plain-text files: read as UTF-8.
  - PDFs:   native PyMuPDF text per page; pages below the OCR quality
            threshold are rendered and run through Tesseract.
  - Images: Tesseract OCR on the whole image.
  - Encrypted or unreadable files raise DocumentError.
"""

from __future__ import annotations

import io
from pathlib import Path

import fitz  # PyMuPDF
import pytesseract
from PIL import Image

from cra_assistant.config import settings
from cra_assistant.logging import log
from cra_assistant.schemas.document import PageText, ParsedDocument, SourceType

TEXT_SUFFIXES = {".txt", ".md", ".text"}
PDF_SUFFIXES = {".pdf"}
IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".gif", ".bmp", ".tif", ".tiff", ".webp"}

_OCR_DPI = 300


class DocumentError(RuntimeError):
    """Raised when a document cannot be turned into text at all."""


def source_type_for(path: Path) -> SourceType:
    suffix = path.suffix.lower()
    if suffix in TEXT_SUFFIXES:
        return SourceType.TEXT
    if suffix in PDF_SUFFIXES:
        return SourceType.PDF
    if suffix in IMAGE_SUFFIXES:
        return SourceType.IMAGE
    raise DocumentError(f"Unsupported file type: {path.name}")


def load_document(path: Path) -> ParsedDocument:
    """Extract text from *path*, using OCR as needed."""
    if not path.exists():
        raise DocumentError(f"File not found: {path}")

    source_type = source_type_for(path)
    if source_type == SourceType.TEXT:
        document = _load_text(path)
    elif source_type == SourceType.PDF:
        document = _load_pdf(path)
    else:
        document = _load_image(path)

    log.info(
        "text_extractor.done",
        filename=path.name,
        source_type=document.source_type,
        total_pages=document.total_pages,
        ocr_pages=sum(1 for p in document.pages if p.ocr_used),
        warnings=len(document.extraction_warnings),
    )
    return document


def load_text(path: Path) -> str:
    """Convenience wrapper returning the concatenated text of *path*."""
    return load_document(path).full_text


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------

def _load_text(path: Path) -> ParsedDocument:
    text = path.read_text(encoding="utf-8", errors="replace").strip()
    return ParsedDocument(
        source_filename=path.name,
        source_type=SourceType.TEXT,
        pages=[PageText(page_number=1, text=text, char_count=len(text))],
    )


def _load_pdf(path: Path) -> ParsedDocument:
    try:
        doc = fitz.open(str(path))
    except fitz.FileDataError as exc:
        raise DocumentError(f"Cannot open PDF: {path}") from exc

    if doc.is_encrypted:
        doc.close()
        raise DocumentError(f"PDF is encrypted and cannot be read: {path}")

    pages: list[PageText] = []
    warnings: list[str] = []
    threshold = settings.ocr_quality_threshold

    for page_index in range(len(doc)):
        page = doc[page_index]
        native_text = page.get_text("text").strip()
        page_number = page_index + 1

        if len(native_text) >= threshold:
            pages.append(PageText(
                page_number=page_number,
                text=native_text,
                char_count=len(native_text),
            ))
            continue

        log.debug("text_extractor.ocr_fallback", page=page_number, native_chars=len(native_text))
        ocr_result = _ocr_page(page, page_number)
        if ocr_result is None or len(ocr_result.text) < len(native_text):
            if not native_text:
                warnings.append(f"Page {page_number}: OCR produced no usable text.")
            pages.append(PageText(
                page_number=page_number,
                text=native_text,
                char_count=len(native_text),
                confidence=1.0 if native_text else 0.0,
            ))
        else:
            pages.append(ocr_result)

    doc.close()
    return ParsedDocument(
        source_filename=path.name,
        source_type=SourceType.PDF,
        pages=pages,
        extraction_warnings=warnings,
    )


def _load_image(path: Path) -> ParsedDocument:
    try:
        image = Image.open(path)
    except OSError as exc:
        raise DocumentError(f"Cannot open image: {path}") from exc

    try:
        page = _ocr_image(image, page_number=1)
    except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as exc:
        raise DocumentError(f"OCR failed for {path.name}: {exc}") from exc
    warnings = [] if page.text else [f"{path.name}: OCR produced no usable text."]
    return ParsedDocument(
        source_filename=path.name,
        source_type=SourceType.IMAGE,
        pages=[page],
        extraction_warnings=warnings,
    )


def _ocr_page(page: fitz.Page, page_number: int) -> PageText | None:
    """Render *page* to an image and run Tesseract OCR."""
    try:
        # Render at 300 DPI for acceptable OCR quality
        mat = fitz.Matrix(_OCR_DPI / 72, _OCR_DPI / 72)
        pix = page.get_pixmap(matrix=mat, colorspace=fitz.csRGB)
        image = Image.open(io.BytesIO(pix.tobytes("png")))
        return _ocr_image(image, page_number)
    except Exception as exc:  # noqa: BLE001
        log.warning("text_extractor.ocr_error", page=page_number, error=str(exc))
        return None


def _ocr_image(image: Image.Image, page_number: int) -> PageText:
    if settings.tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = settings.tesseract_cmd

    data = pytesseract.image_to_data(
        image,
        lang=settings.ocr_languages,
        output_type=pytesseract.Output.DICT,
    )
    words = [w for w in data["text"] if w.strip()]
    confidences = [float(c) for c, w in zip(data["conf"], data["text"]) if w.strip() and float(c) != -1]
    text = " ".join(words)
    avg_conf = (sum(confidences) / len(confidences) / 100.0) if confidences else 0.0

    return PageText(
        page_number=page_number,
        text=text,
        char_count=len(text),
        ocr_used=True,
        confidence=min(max(avg_conf, 0.0), 1.0),
    )
