"""
Free-tier extraction provider.

Chains text extraction with the menu text grammar:

    image -> OCR.space -> text grammar -> (placeholder images)
    pdf   -> pdfplumber / OCR.space -> text grammar -> (placeholder images)
    csv/xlsx -> spreadsheet columns -> (placeholder images)
"""

import asyncio
from typing import Optional
import structlog

from models.menu import (
    DocumentKind,
    SourceDocument,
    ExistingCategory,
    ExtractedMenuData,
)
from parsers.spreadsheet_parser import parse_menu_spreadsheet
from services import format_detector
from services.ocr_service import OcrService, get_ocr_service
from services.menu_text_parser import parse_menu_text, detect_currency
from services.image_generation_service import ImageGenerationService, get_image_generation_service

logger = structlog.get_logger(__name__)


class FreeExtractionProvider:
    """OCR + heuristic structuring. No per-call cost."""

    name = "free"

    def __init__(
        self,
        ocr: Optional[OcrService] = None,
        image_generator: Optional[ImageGenerationService] = None,
        generate_images: bool = False,
    ):
        self.ocr = ocr or get_ocr_service()
        self.generate_images = generate_images
        self._image_generator = image_generator

    @property
    def image_generator(self) -> ImageGenerationService:
        if self._image_generator is None:
            self._image_generator = get_image_generation_service()
        return self._image_generator

    async def extract(
        self,
        document: SourceDocument,
        existing_categories: list[ExistingCategory],
    ) -> ExtractedMenuData:
        """
        Extract menu data without a paid model.

        Raises:
            ExtractionFailedError: Empty/too-short OCR text, OCR errors,
                unreadable spreadsheets
        """
        kind = format_detector.detect(document)
        hints = [c.name for c in existing_categories]

        logger.info(
            "menu_extraction_started",
            provider=self.name,
            file_name=document.file_name,
            kind=kind.value,
            hint_count=len(hints)
        )

        if kind in (DocumentKind.SPREADSHEET_CSV, DocumentKind.SPREADSHEET_EXCEL):
            parsed = parse_menu_spreadsheet(document.content, kind)
            for error in parsed.errors:
                logger.warning(
                    "spreadsheet_row_issue",
                    sheet=error.sheet,
                    row=error.row,
                    field=error.field,
                    error=error.error
                )
            data = ExtractedMenuData(categories=parsed.categories)
        else:
            # OCR.space and pdfplumber block; keep them off the event loop
            ocr_result = await asyncio.to_thread(self.ocr.extract_text, document, kind)
            data = parse_menu_text(ocr_result.text, existing_category_names=hints)

        categories = data.categories
        if self.generate_images and categories:
            categories = self.image_generator.decorate(categories)

        result = ExtractedMenuData(
            categories=categories,
            currency=data.currency or (detect_currency(data.raw_text) if data.raw_text else None),
            raw_text=data.raw_text,
            provider=self.name,
        )

        logger.info(
            "menu_extraction_completed",
            provider=self.name,
            categories=len(result.categories),
            items=result.total_items
        )
        return result
