"""
Vision model extraction provider.

Sends the whole document to Claude in a single Messages call and asks for
the menu as JSON. Images go as image blocks, PDFs as document blocks and
spreadsheets as CSV text.
"""

import asyncio
import base64
import json
import re
from typing import Optional, Union
import anthropic
import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from config import settings
from exceptions import ExtractionFailedError, MalformedProviderResponseError
from models.menu import (
    DocumentKind,
    SourceDocument,
    ExistingCategory,
    ExtractedItem,
    ExtractedCategory,
    ExtractedMenuData,
)
from parsers.spreadsheet_parser import spreadsheet_to_text
from services import format_detector
from utils.text_utils import clean_text, parse_price

logger = structlog.get_logger(__name__)


SYSTEM_PROMPT = """You are a restaurant menu parser. Extract every menu item from the document.

IMPORTANT: Return ONLY valid JSON, no markdown, no explanation, no code blocks.

Rules:
1. Extract every item with its price. Do not skip items.
2. Group items under the category headings printed on the menu
   (Starters, Main Dishes, Drinks, Desserts, ...). Keep the menu's order.
3. Prices are plain numbers without currency symbols or thousands separators.
4. Put ingredients and preparation notes in the item description.
5. Menus may be in English, French, Kinyarwanda or any other language.
6. Report the currency used (RWF, USD, EUR, ...) if you can tell.
{existing_categories}
Return JSON in this exact structure:
{{
  "restaurant_name": "Restaurant name if visible, else null",
  "currency": "RWF",
  "categories": [
    {{
      "name": "Category Name",
      "description": null,
      "items": [
        {{
          "name": "Item Name",
          "description": "Ingredients and details, or null",
          "price": 5000
        }}
      ]
    }}
  ]
}}"""

USER_PROMPT = "Parse this restaurant menu and extract all categories and items."


class _PayloadItem(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Union[float, str, None] = None


class _PayloadCategory(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    items: list[_PayloadItem] = Field(default_factory=list)


class _Payload(BaseModel):
    """Shape the model is asked to return."""
    restaurant_name: Optional[str] = None
    currency: Optional[str] = None
    categories: list[_PayloadCategory]


def build_system_prompt(existing_categories: list[ExistingCategory]) -> str:
    """System prompt, listing the operator's categories when there are any."""
    if existing_categories:
        names = "\n".join(f"- {c.name}" for c in existing_categories)
        hint = f"\nEXISTING CATEGORIES (reuse these names when a section matches):\n{names}\n"
    else:
        hint = ""
    return SYSTEM_PROMPT.format(existing_categories=hint)


def strip_code_fences(response_text: str) -> str:
    """Remove ```json ... ``` wrapping if the model added it anyway."""
    cleaned = response_text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r'^```(?:json)?\s*', '', cleaned)
        cleaned = re.sub(r'\s*```$', '', cleaned)
    return cleaned


class VisionExtractionProvider:
    """
    Single-call extraction through the Anthropic Messages API.

    Costs per call; chosen through the `extraction_provider` setting.
    """

    name = "vision"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        client: Optional[anthropic.Anthropic] = None,
    ):
        self.model = model or settings.vision_model
        self.max_tokens = max_tokens or settings.vision_max_tokens
        api_key = api_key or settings.anthropic_api_key

        if client is not None:
            self.client = client
        elif api_key:
            self.client = anthropic.Anthropic(api_key=api_key)
        else:
            self.client = None

    def _build_content(self, document: SourceDocument, kind: DocumentKind) -> list[dict]:
        """Message content blocks for the document."""
        if kind in (DocumentKind.SPREADSHEET_CSV, DocumentKind.SPREADSHEET_EXCEL):
            table = spreadsheet_to_text(document.content, kind)
            return [{
                "type": "text",
                "text": f"Menu spreadsheet ({document.file_name}) as CSV:\n\n{table}"
            }]

        encoded = base64.b64encode(document.content).decode("utf-8")
        if kind == DocumentKind.PDF:
            block = {
                "type": "document",
                "source": {
                    "type": "base64",
                    "media_type": "application/pdf",
                    "data": encoded
                }
            }
        else:
            block = {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": format_detector.canonical_media_type(document),
                    "data": encoded
                }
            }
        return [block]

    async def extract(
        self,
        document: SourceDocument,
        existing_categories: list[ExistingCategory],
    ) -> ExtractedMenuData:
        """
        Send the document to Claude and parse the JSON answer.

        Raises:
            ExtractionFailedError: Missing API key or API error
            MalformedProviderResponseError: Non-JSON answer or wrong shape
        """
        if self.client is None:
            raise ExtractionFailedError(
                provider=self.name,
                message="Vision extraction is not configured. Set ANTHROPIC_API_KEY."
            )

        kind = format_detector.detect(document)
        content = self._build_content(document, kind)
        content.append({"type": "text", "text": USER_PROMPT})

        logger.info(
            "menu_extraction_started",
            provider=self.name,
            file_name=document.file_name,
            kind=kind.value,
            size=document.size,
            hint_count=len(existing_categories)
        )

        try:
            response = await asyncio.to_thread(
                self.client.messages.create,
                model=self.model,
                max_tokens=self.max_tokens,
                system=build_system_prompt(existing_categories),
                messages=[{
                    "role": "user",
                    "content": content
                }]
            )
        except anthropic.APIError as e:
            logger.error("vision_api_error", file_name=document.file_name, error=str(e))
            raise ExtractionFailedError(
                provider=self.name,
                message=f"Vision model request failed: {str(e)}",
                details={"file_name": document.file_name}
            )

        response_text = "".join(
            getattr(block, "text", "") for block in response.content
        )
        logger.debug("vision_response_received", response_length=len(response_text))

        data = self._parse_response(response_text)

        logger.info(
            "menu_extraction_completed",
            provider=self.name,
            categories=len(data.categories),
            items=data.total_items,
            currency=data.currency
        )
        return data

    def _parse_response(self, response_text: str) -> ExtractedMenuData:
        """
        Parse Claude's JSON answer into ExtractedMenuData.

        Raises:
            MalformedProviderResponseError: If the answer is not JSON or has
                the wrong shape
        """
        cleaned = strip_code_fences(response_text)
        if not cleaned:
            raise MalformedProviderResponseError(
                provider=self.name,
                message="Vision model returned an empty response"
            )

        try:
            raw = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.error("json_parse_failed", response_preview=response_text[:500], error=str(e))
            raise MalformedProviderResponseError(
                provider=self.name,
                message="Vision model response is not valid JSON",
                details={"response_preview": response_text[:500]}
            )

        try:
            payload = _Payload.model_validate(raw)
        except PydanticValidationError as e:
            logger.error("payload_shape_invalid", errors=e.error_count())
            raise MalformedProviderResponseError(
                provider=self.name,
                message="Vision model response does not have the expected menu structure",
                details={"errors": [err["msg"] for err in e.errors()[:10]]}
            )

        categories = []
        for raw_category in payload.categories:
            # Same name twice in one category: keep the one with a description
            unique: dict[str, ExtractedItem] = {}
            for raw_item in raw_category.items:
                item = ExtractedItem(
                    name=clean_text(raw_item.name) or "",
                    description=clean_text(raw_item.description, max_length=1000),
                    price=parse_price(raw_item.price),
                )
                key = item.name.lower()
                if key not in unique or (item.description and not unique[key].description):
                    unique[key] = item
            categories.append(ExtractedCategory(
                name=clean_text(raw_category.name) or "",
                description=clean_text(raw_category.description, max_length=1000),
                items=list(unique.values()),
            ))

        currency = (payload.currency or "").strip().upper() or None

        return ExtractedMenuData(
            categories=categories,
            restaurant_name=clean_text(payload.restaurant_name),
            currency=currency,
            provider=self.name,
        )
