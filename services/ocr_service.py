"""
Text extraction for the free-tier provider.

Native PDFs are read with pdfplumber. Images and scanned PDFs go to the
OCR.space HTTP API. Empty or near-empty output is a hard failure: the
caller gets ExtractionFailedError instead of an empty menu.
"""

import base64
from dataclasses import dataclass
from io import BytesIO
from typing import Optional
import pdfplumber
import requests
import structlog

from config import settings
from models.menu import DocumentKind, SourceDocument
from exceptions import ExtractionFailedError
from services import format_detector

logger = structlog.get_logger(__name__)


@dataclass
class OcrResult:
    """
    Text pulled out of a document.

    Attributes:
        text: Extracted text content
        method: pdf_text, ocr_space
        page_count: Number of pages processed
    """
    text: str
    method: str
    page_count: int = 1

    @property
    def char_count(self) -> int:
        return len(self.text.strip())


class OcrService:
    """Turns image and PDF bytes into plain text."""

    PROVIDER = "ocr"

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: Optional[str] = None,
        language: Optional[str] = None,
        min_chars: Optional[int] = None,
        timeout: Optional[int] = None,
    ):
        self.api_key = api_key or settings.ocr_space_api_key
        self.url = url or settings.ocr_space_url
        self.language = language or settings.ocr_language
        self.min_chars = min_chars if min_chars is not None else settings.min_ocr_chars
        self.timeout = timeout or settings.ocr_timeout_seconds

    def extract_text(self, document: SourceDocument, kind: DocumentKind) -> OcrResult:
        """
        Extract text from an image or PDF.

        PDFs try the embedded text layer first and only go to OCR when it is
        shorter than min_chars (scanned menus).

        Raises:
            ExtractionFailedError: On OCR errors or when too little text comes back
        """
        if kind == DocumentKind.PDF:
            result = self._extract_pdf_text(document.content)
            if result.char_count < self.min_chars:
                logger.info(
                    "pdf_text_layer_insufficient",
                    file_name=document.file_name,
                    text_length=result.char_count
                )
                result = self._ocr_space(document.content, "application/pdf", document.file_name)
        elif kind == DocumentKind.IMAGE:
            result = self._ocr_space(
                document.content,
                format_detector.canonical_media_type(document),
                document.file_name
            )
        else:
            raise ExtractionFailedError(
                provider=self.PROVIDER,
                message=f"OCR does not handle {kind.value} documents",
                details={"file_name": document.file_name}
            )

        if result.char_count < self.min_chars:
            logger.warning(
                "ocr_output_too_short",
                file_name=document.file_name,
                method=result.method,
                text_length=result.char_count,
                min_chars=self.min_chars
            )
            raise ExtractionFailedError(
                provider=self.PROVIDER,
                message="No readable menu text found. Try a sharper photo or a text-based PDF.",
                details={
                    "file_name": document.file_name,
                    "method": result.method,
                    "text_length": result.char_count,
                }
            )

        logger.info(
            "document_text_extracted",
            file_name=document.file_name,
            method=result.method,
            text_length=result.char_count,
            pages=result.page_count
        )
        return result

    def _extract_pdf_text(self, pdf_bytes: bytes) -> OcrResult:
        """
        Extract text using pdfplumber (for native PDFs).

        Raises:
            ExtractionFailedError: If the PDF cannot be opened
        """
        pages = []
        try:
            with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if page_text:
                        pages.append(page_text)
                page_count = len(pdf.pages)
        except Exception as e:
            logger.error("pdf_extraction_failed", error=str(e))
            raise ExtractionFailedError(
                provider=self.PROVIDER,
                message="Failed to read PDF. The file might be corrupted or password-protected.",
                details={"original_error": str(e)}
            )

        # Blank line between pages keeps page-final items apart
        return OcrResult(text="\n\n".join(pages), method="pdf_text", page_count=page_count)

    def _ocr_space(self, content: bytes, media_type: str, file_name: str) -> OcrResult:
        """
        Run OCR.space on an image or PDF.

        Raises:
            ExtractionFailedError: HTTP failure or OCR processing error
        """
        encoded = base64.b64encode(content).decode("utf-8")
        payload = {
            "base64Image": f"data:{media_type};base64,{encoded}",
            "language": self.language,
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "scale": "true",
            "isTable": "true",  # keeps name and price on one line
            "OCREngine": "2",
        }

        logger.info("ocr_space_request", file_name=file_name, media_type=media_type, size=len(content))

        try:
            response = requests.post(
                self.url,
                data=payload,
                headers={"apikey": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            logger.error("ocr_space_request_failed", file_name=file_name, error=str(e))
            raise ExtractionFailedError(
                provider=self.PROVIDER,
                message="Failed to extract text from document",
                details={"file_name": file_name, "original_error": str(e)}
            )
        except ValueError as e:
            logger.error("ocr_space_invalid_json", file_name=file_name, error=str(e))
            raise ExtractionFailedError(
                provider=self.PROVIDER,
                message="OCR service returned an unreadable response",
                details={"file_name": file_name}
            )

        if body.get("IsErroredOnProcessing"):
            error_message = body.get("ErrorMessage") or ["OCR processing failed"]
            if isinstance(error_message, list):
                error_message = "; ".join(str(m) for m in error_message)
            logger.error("ocr_space_processing_error", file_name=file_name, error=error_message)
            raise ExtractionFailedError(
                provider=self.PROVIDER,
                message=f"OCR processing failed: {error_message}",
                details={"file_name": file_name}
            )

        parsed = body.get("ParsedResults") or []
        text = "\n\n".join((p.get("ParsedText") or "").strip() for p in parsed)
        return OcrResult(text=text.strip(), method="ocr_space", page_count=max(len(parsed), 1))


# Singleton instance
_ocr_service: Optional[OcrService] = None


def get_ocr_service() -> OcrService:
    """Get or create OcrService instance."""
    global _ocr_service
    if _ocr_service is None:
        _ocr_service = OcrService()
    return _ocr_service
