"""
Format detection for uploaded menu documents.

Classifies a document into one of the supported kinds from its declared
media type, falling back to the file extension when the browser sends a
generic type. Binary kinds are checked against their magic bytes so a
renamed file cannot reach an extraction provider.
"""

from typing import Optional
import structlog

from models.menu import DocumentKind, SourceDocument
from exceptions import UnsupportedFormatError, FileTooLargeError

logger = structlog.get_logger(__name__)


MEDIA_TYPES: dict[str, DocumentKind] = {
    "image/jpeg": DocumentKind.IMAGE,
    "image/jpg": DocumentKind.IMAGE,
    "image/png": DocumentKind.IMAGE,
    "image/webp": DocumentKind.IMAGE,
    "image/gif": DocumentKind.IMAGE,
    "application/pdf": DocumentKind.PDF,
    "text/csv": DocumentKind.SPREADSHEET_CSV,
    "application/csv": DocumentKind.SPREADSHEET_CSV,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": DocumentKind.SPREADSHEET_EXCEL,
    "application/vnd.ms-excel": DocumentKind.SPREADSHEET_EXCEL,
}

EXTENSIONS: dict[str, DocumentKind] = {
    ".jpg": DocumentKind.IMAGE,
    ".jpeg": DocumentKind.IMAGE,
    ".png": DocumentKind.IMAGE,
    ".webp": DocumentKind.IMAGE,
    ".gif": DocumentKind.IMAGE,
    ".pdf": DocumentKind.PDF,
    ".csv": DocumentKind.SPREADSHEET_CSV,
    ".xlsx": DocumentKind.SPREADSHEET_EXCEL,
    ".xls": DocumentKind.SPREADSHEET_EXCEL,
}

# Media types that say nothing about the content
GENERIC_MEDIA_TYPES = {"", "application/octet-stream", "binary/octet-stream"}

# Browsers report .csv as vnd.ms-excel on Windows
AMBIGUOUS_MEDIA_TYPES = {"application/vnd.ms-excel"}

MAGIC_BYTES: dict[str, list[bytes]] = {
    "image/jpeg": [b"\xff\xd8\xff"],
    "image/jpg": [b"\xff\xd8\xff"],
    "image/png": [b"\x89PNG"],
    "image/gif": [b"GIF8"],
    "image/webp": [b"RIFF"],
    "application/pdf": [b"%PDF"],
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": [b"PK\x03\x04"],
}

# Signatures for extension-only detection
EXTENSION_MAGIC: dict[str, list[bytes]] = {
    ".jpg": MAGIC_BYTES["image/jpeg"],
    ".jpeg": MAGIC_BYTES["image/jpeg"],
    ".png": MAGIC_BYTES["image/png"],
    ".gif": MAGIC_BYTES["image/gif"],
    ".webp": MAGIC_BYTES["image/webp"],
    ".pdf": MAGIC_BYTES["application/pdf"],
    ".xlsx": MAGIC_BYTES["application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"],
}


def _normalize_media_type(media_type: Optional[str]) -> str:
    """Lowercase and drop parameters ("text/csv; charset=utf-8" -> "text/csv")."""
    if not media_type:
        return ""
    return media_type.split(";", 1)[0].strip().lower()


def _has_signature(content: bytes, signatures: list[bytes]) -> bool:
    return any(content.startswith(sig) for sig in signatures)


def detect(document: SourceDocument, max_bytes: Optional[int] = None) -> DocumentKind:
    """
    Classify a document into a DocumentKind.

    Args:
        document: Uploaded document
        max_bytes: Optional size limit; larger documents are rejected

    Returns:
        DocumentKind

    Raises:
        UnsupportedFormatError: Type not whitelisted, empty, or content mismatch
        FileTooLargeError: Document larger than max_bytes
    """
    media_type = _normalize_media_type(document.media_type)
    extension = document.extension

    if document.size == 0:
        raise UnsupportedFormatError(
            document.file_name,
            document.media_type,
            reason="File is empty"
        )

    if max_bytes is not None and document.size > max_bytes:
        raise FileTooLargeError(document.file_name, document.size, max_bytes)

    if media_type in MEDIA_TYPES and not (
        media_type in AMBIGUOUS_MEDIA_TYPES and extension == ".csv"
    ):
        kind = MEDIA_TYPES[media_type]
        signatures = MAGIC_BYTES.get(media_type)
    elif media_type in GENERIC_MEDIA_TYPES or media_type in AMBIGUOUS_MEDIA_TYPES:
        kind = EXTENSIONS.get(extension)
        signatures = EXTENSION_MAGIC.get(extension)
    else:
        kind = None
        signatures = None

    if kind is None:
        logger.warning(
            "unsupported_document_format",
            file_name=document.file_name,
            media_type=document.media_type,
            extension=extension
        )
        raise UnsupportedFormatError(document.file_name, document.media_type)

    if signatures and not _has_signature(document.content, signatures):
        logger.warning(
            "document_content_mismatch",
            file_name=document.file_name,
            media_type=document.media_type,
            kind=kind.value
        )
        raise UnsupportedFormatError(
            document.file_name,
            document.media_type,
            reason="File content does not match declared type"
        )

    logger.debug(
        "document_format_detected",
        file_name=document.file_name,
        kind=kind.value,
        size=document.size
    )
    return kind


# Type sent downstream for each signature and extension
CANONICAL_BY_SIGNATURE: list[tuple[bytes, str]] = [
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG", "image/png"),
    (b"GIF8", "image/gif"),
    (b"RIFF", "image/webp"),
    (b"%PDF", "application/pdf"),
]

CANONICAL_BY_EXTENSION: dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
    ".csv": "text/csv",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".xls": "application/vnd.ms-excel",
}

MEDIA_TYPE_ALIASES = {
    "image/jpg": "image/jpeg",
    "application/csv": "text/csv",
}


def canonical_media_type(document: SourceDocument) -> str:
    """
    Media type to hand to OCR.space or the vision model.

    The declared type may be generic or an alias ("image/jpg"), so the
    content signature wins, then a whitelisted declared type, then the
    extension.
    """
    for signature, media_type in CANONICAL_BY_SIGNATURE:
        if document.content.startswith(signature):
            return media_type

    declared = _normalize_media_type(document.media_type)
    declared = MEDIA_TYPE_ALIASES.get(declared, declared)
    if declared in MEDIA_TYPES and declared not in AMBIGUOUS_MEDIA_TYPES:
        return declared

    return CANONICAL_BY_EXTENSION.get(document.extension, declared or "application/octet-stream")
