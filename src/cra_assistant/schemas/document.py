"""Schemas for document text-extraction output."""

from enum import StrEnum

from pydantic import BaseModel, Field


class SourceType(StrEnum):
    TEXT = "text"      # plain-text file, read as-is
    PDF = "pdf"        # native text layer, OCR per page where thin
    IMAGE = "image"    # scanned record, OCR only


class PageText(BaseModel):
    page_number: int
    text: str
    char_count: int
    ocr_used: bool = False
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class ParsedDocument(BaseModel):
    source_filename: str
    source_type: SourceType
    pages: list[PageText]
    extraction_warnings: list[str] = Field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.pages)

    @property
    def full_text(self) -> str:
        return "\n\n".join(p.text for p in self.pages if p.text.strip())
