"""
Application settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    """
    Application settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on startup.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # SUPABASE
    # ===================
    supabase_url: str = Field(
        ...,
        description="Supabase project URL"
    )
    supabase_key: str = Field(
        ...,
        description="Supabase anon/public key"
    )
    supabase_service_key: Optional[str] = Field(
        None,
        description="Supabase service role key (for admin operations)"
    )

    # ===================
    # EXTRACTION PROVIDER
    # ===================
    extraction_provider: Literal["free", "vision"] = Field(
        default="free",
        description="Which extraction provider to build for every session"
    )

    # Vision model (paid)
    anthropic_api_key: Optional[str] = Field(
        None,
        description="Anthropic API key for the vision provider"
    )
    vision_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model used for single-call menu extraction"
    )
    vision_max_tokens: int = Field(
        default=8192,
        ge=512,
        le=64000,
        description="Maximum tokens in the vision model response"
    )

    # OCR + structuring (free)
    ocr_space_api_key: str = Field(
        default="helloworld",
        description="OCR.space API key (the public demo key works for small files)"
    )
    ocr_space_url: str = Field(
        default="https://api.ocr.space/parse/image",
        description="OCR.space parse endpoint"
    )
    ocr_language: str = Field(
        default="eng",
        description="OCR language code"
    )
    ocr_timeout_seconds: int = Field(
        default=60,
        ge=5,
        le=300,
        description="Timeout for a single OCR request"
    )
    min_ocr_chars: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Extracted text shorter than this is treated as a failed OCR"
    )

    # Placeholder images
    generate_placeholder_images: bool = Field(
        default=False,
        description="Synthesize item images with the image model after structuring"
    )
    huggingface_api_key: Optional[str] = Field(
        None,
        description="Hugging Face token for the image model"
    )
    image_model_url: str = Field(
        default="https://api-inference.huggingface.co/models/stabilityai/stable-diffusion-xl-base-1.0",
        description="Inference endpoint for placeholder images"
    )

    # ===================
    # IMPORT SESSION
    # ===================
    max_upload_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Largest accepted source document in bytes"
    )
    session_ttl_minutes: int = Field(
        default=60,
        ge=1,
        le=24 * 60,
        description="Idle import sessions are discarded after this many minutes"
    )
    refresh_catalog_before_commit: bool = Field(
        default=True,
        description="Re-read existing categories right before reconciling on confirm"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API host"
    )
    api_port: int = Field(
        default=8000,
        ge=1000,
        le=65535,
        description="API port"
    )
    cors_origins: list[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        description="Frontends allowed to call the API (JSON list in env)"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def vision_configured(self) -> bool:
        """Check if the vision provider can be used."""
        return bool(self.anthropic_api_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Application settings

    Raises:
        ValidationError: If required env vars are missing or invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
