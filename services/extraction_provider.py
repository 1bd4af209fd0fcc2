"""
Extraction Provider Interface

Defines the contract for menu extraction providers (free OCR pipeline,
paid vision model). Providers are interchangeable: the import session only
talks to this protocol, and the provider is chosen once from configuration.
"""

from typing import Protocol, Optional
import structlog

from config import Settings, get_settings
from models.menu import SourceDocument, ExistingCategory, ExtractedMenuData
from services.free_extraction_provider import FreeExtractionProvider
from services.vision_extraction_provider import VisionExtractionProvider

logger = structlog.get_logger(__name__)


class ExtractionProvider(Protocol):
    """
    Protocol for extraction providers.

    All providers must implement this interface to be usable by the
    import session.
    """

    name: str

    async def extract(
        self,
        document: SourceDocument,
        existing_categories: list[ExistingCategory],
    ) -> ExtractedMenuData:
        """
        Convert a source document into structured menu data.

        Args:
            document: Uploaded document (already accepted by the format detector)
            existing_categories: Operator's categories; a naming hint the
                provider may use or ignore

        Returns:
            ExtractedMenuData

        Raises:
            ExtractionFailedError: Provider could not read the document
            MalformedProviderResponseError: Provider output has the wrong shape
        """
        ...


PROVIDERS = {
    FreeExtractionProvider.name: FreeExtractionProvider,
    VisionExtractionProvider.name: VisionExtractionProvider,
}


def get_extraction_provider(settings: Optional[Settings] = None) -> ExtractionProvider:
    """
    Build the provider named by the `extraction_provider` setting.

    Selection is static: there is no fallback from one provider to the
    other when a call fails.

    Args:
        settings: Settings to read; defaults to the cached application settings

    Returns:
        ExtractionProvider instance

    Raises:
        ValueError: If the configured provider is unknown or not configured
    """
    settings = settings or get_settings()
    provider_name = settings.extraction_provider

    if provider_name not in PROVIDERS:
        raise ValueError(
            f"Unknown extraction provider: {provider_name}. "
            f"Available: {', '.join(PROVIDERS)}"
        )

    if provider_name == VisionExtractionProvider.name:
        if not settings.vision_configured:
            raise ValueError("Vision provider selected but ANTHROPIC_API_KEY is not set")
        provider = VisionExtractionProvider(
            api_key=settings.anthropic_api_key,
            model=settings.vision_model,
            max_tokens=settings.vision_max_tokens,
        )
    else:
        provider = FreeExtractionProvider(
            generate_images=settings.generate_placeholder_images,
        )

    logger.info("extraction_provider_selected", provider=provider_name)
    return provider
