"""
Placeholder image generation for extracted menu items.

Calls a text-to-image model on the Hugging Face inference API and returns
the picture as a data URL. Image generation is cosmetic: any failure is
logged and the item simply keeps no image.
"""

import base64
from typing import Optional
import requests
import structlog

from config import settings
from models.menu import ExtractedCategory, ExtractedItem

logger = structlog.get_logger(__name__)


NEGATIVE_PROMPT = ", ".join([
    "blurry", "low quality", "unappetizing", "messy", "dark", "distorted",
    "text", "watermark", "logo", "cartoon", "drawing", "oversaturated",
])


def build_prompt(item_name: str, description: Optional[str] = None) -> str:
    """Food-photography prompt for one menu item."""
    parts = [
        "professional food photography",
        item_name.lower(),
        (description or "").lower(),
        "photorealistic",
        "restaurant quality",
        "studio lighting",
        "shallow depth of field",
        "appetizing presentation",
    ]
    return ", ".join(p for p in parts if p)


class ImageGenerationService:
    """Generates one image per menu item, sequentially."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_url: Optional[str] = None,
        timeout: int = 120,
    ):
        self.api_key = api_key or settings.huggingface_api_key
        self.model_url = model_url or settings.image_model_url
        self.timeout = timeout

    def generate(self, item_name: str, description: Optional[str] = None) -> Optional[str]:
        """
        Generate an image for one item.

        Returns:
            data: URL of the image, or None when generation failed
        """
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {
            "inputs": build_prompt(item_name, description),
            "parameters": {
                "negative_prompt": NEGATIVE_PROMPT,
                "num_inference_steps": 30,
                "guidance_scale": 9.0,
                "width": 768,
                "height": 768,
            },
        }

        try:
            response = requests.post(self.model_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("image_generation_request_failed", item=item_name, error=str(e))
            return None

        if response.status_code != 200:
            logger.warning(
                "image_generation_failed",
                item=item_name,
                status_code=response.status_code,
                body=response.text[:200]
            )
            return None

        media_type = response.headers.get("Content-Type", "image/jpeg").split(";", 1)[0]
        if not media_type.startswith("image/"):
            logger.warning("image_generation_unexpected_content", item=item_name, content_type=media_type)
            return None

        encoded = base64.b64encode(response.content).decode("utf-8")
        return f"data:{media_type};base64,{encoded}"

    def decorate(self, categories: list[ExtractedCategory]) -> list[ExtractedCategory]:
        """
        Return copies of the categories with image_url filled where missing.

        Items that already carry an image are left alone.
        """
        decorated = []
        generated = 0
        attempted = 0

        for category in categories:
            items: list[ExtractedItem] = []
            for item in category.items:
                if item.image_url or not item.name:
                    items.append(item)
                    continue
                attempted += 1
                image_url = self.generate(item.name, item.description)
                if image_url:
                    generated += 1
                    item = item.model_copy(update={"image_url": image_url})
                items.append(item)
            decorated.append(category.model_copy(update={"items": items}))

        logger.info("placeholder_images_generated", generated=generated, attempted=attempted)
        return decorated


# Singleton instance
_image_service: Optional[ImageGenerationService] = None


def get_image_generation_service() -> ImageGenerationService:
    """Get or create ImageGenerationService instance."""
    global _image_service
    if _image_service is None:
        _image_service = ImageGenerationService()
    return _image_service
