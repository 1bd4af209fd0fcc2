"""
Import session service.

Drives one menu import through its stages:

    setup -> upload -> preview -> importing -> complete
                          ^            |
                          +-- failure -+

reset() returns any session to setup. Sessions are kept in the in-memory
session store and addressed by id.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import Settings, get_settings
from models.menu import SourceDocument, ExtractedMenuData
from models.import_session import (
    ImportSession,
    ImportStage,
    ImportOutcome,
    is_valid_stage_transition,
)
from exceptions import (
    SessionNotFoundError,
    SessionIncompleteError,
    InvalidStageTransitionError,
    CategoryNotFoundError,
    ImportValidationError,
    CategoryCreationFailedError,
    ItemInsertFailedError,
)
from services import format_detector, session_store
from services.catalog_service import CatalogService, get_catalog_service
from services.category_reconciler import reconcile_all
from services.extraction_provider import ExtractionProvider, get_extraction_provider
from services.menu_import_service import MenuImportService, get_menu_import_service
from services.menu_validator import validate, has_blocking_errors

logger = structlog.get_logger(__name__)


class ImportSessionService:
    """
    Import session state machine.

    The extraction provider is fixed at construction; every session handled
    by this service uses it.
    """

    def __init__(
        self,
        provider: Optional[ExtractionProvider] = None,
        catalog: Optional[CatalogService] = None,
        importer: Optional[MenuImportService] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._provider = provider
        self._catalog = catalog
        self._importer = importer

    @property
    def provider(self) -> ExtractionProvider:
        if self._provider is None:
            self._provider = get_extraction_provider(self.settings)
        return self._provider

    @property
    def catalog(self) -> CatalogService:
        if self._catalog is None:
            self._catalog = get_catalog_service()
        return self._catalog

    @property
    def importer(self) -> MenuImportService:
        if self._importer is None:
            self._importer = get_menu_import_service()
        return self._importer

    # ===================
    # HELPERS
    # ===================

    def get(self, session_id: str) -> ImportSession:
        """
        Get a live session.

        Raises:
            SessionNotFoundError: If the session expired or never existed
        """
        session = session_store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _save(self, session: ImportSession) -> ImportSession:
        session.updated_at = datetime.utcnow()
        session_store.save_session(session, ttl_minutes=self.settings.session_ttl_minutes)
        return session

    def _transition(self, session: ImportSession, new_stage: ImportStage, action: str) -> None:
        if not is_valid_stage_transition(session.stage, new_stage):
            logger.warning(
                "invalid_stage_transition",
                session_id=session.id,
                current_stage=session.stage.value,
                new_stage=new_stage.value,
                action=action
            )
            raise InvalidStageTransitionError(session.stage.value, new_stage.value, action)

        logger.info(
            "import_stage_changed",
            session_id=session.id,
            from_stage=session.stage.value,
            to_stage=new_stage.value
        )
        session.stage = new_stage

    def _require_stage(self, session: ImportSession, stage: ImportStage, action: str) -> None:
        if session.stage != stage:
            raise InvalidStageTransitionError(session.stage.value, stage.value, action)

    # ===================
    # OPERATIONS
    # ===================

    def begin_session(self, restaurant_id: str, menu_group_id: Optional[str] = None) -> ImportSession:
        """
        Start a new session in setup.

        Raises:
            SessionIncompleteError: If restaurant_id is empty
        """
        if not restaurant_id or not restaurant_id.strip():
            raise SessionIncompleteError("restaurant", ImportStage.SETUP.value)

        session = ImportSession(restaurant_id=restaurant_id.strip(), menu_group_id=menu_group_id)

        logger.info(
            "import_session_started",
            session_id=session.id,
            restaurant_id=session.restaurant_id,
            menu_group_id=menu_group_id,
            provider=getattr(self._provider, "name", self.settings.extraction_provider)
        )
        return self._save(session)

    def configure(
        self,
        session_id: str,
        menu_group_id: Optional[str] = None,
        category_override_id: Optional[str] = None
    ) -> ImportSession:
        """
        Pick the target menu group, snapshot its categories, move to upload.

        Args:
            session_id: Session to configure
            menu_group_id: Target menu group; falls back to the one given at begin
            category_override_id: Existing category to receive every item

        Raises:
            InvalidStageTransitionError: If not in setup
            SessionIncompleteError: If no menu group is selected
            CategoryNotFoundError: If the override is not in the menu group
            DatabaseError: If the categories cannot be read
        """
        session = self.get(session_id)
        self._require_stage(session, ImportStage.SETUP, "configure")

        menu_group_id = menu_group_id or session.menu_group_id
        if not menu_group_id:
            raise SessionIncompleteError("menu_group", ImportStage.SETUP.value)

        existing = self.catalog.list_categories(menu_group_id)
        if category_override_id and not any(c.id == category_override_id for c in existing):
            raise CategoryNotFoundError(category_override_id)

        session.menu_group_id = menu_group_id
        session.category_override_id = category_override_id
        session.existing_categories = existing
        self._transition(session, ImportStage.UPLOAD, "configure")

        return self._save(session)

    def select_document(
        self,
        session_id: str,
        file_name: str,
        media_type: Optional[str],
        content: bytes
    ) -> ImportSession:
        """
        Attach a document after checking its format.

        Selecting again replaces the previous document. A rejected document
        leaves the session as it was.

        Raises:
            InvalidStageTransitionError: If not in upload
            UnsupportedFormatError: Unsupported, empty or mislabelled file
            FileTooLargeError: File above max_upload_bytes
        """
        session = self.get(session_id)
        self._require_stage(session, ImportStage.UPLOAD, "select_document")

        document = SourceDocument(file_name=file_name or "", media_type=media_type or "", content=content)
        kind = format_detector.detect(document, max_bytes=self.settings.max_upload_bytes)

        session.document = document
        session.document_kind = kind
        session.extracted_data = None
        session.issues = []

        logger.info(
            "import_document_selected",
            session_id=session.id,
            file_name=document.file_name,
            kind=kind.value,
            size=document.size
        )
        return self._save(session)

    async def extract(self, session_id: str) -> ImportSession:
        """
        Run the extraction provider and the validator, move to preview.

        Provider failures and blocking validation errors keep the session in
        upload; with blocking errors the extracted data and issues are still
        stored on the session for display.

        Raises:
            InvalidStageTransitionError: If not in upload
            SessionIncompleteError: If no document is selected
            ExtractionFailedError: Provider could not read the document
            MalformedProviderResponseError: Provider output had the wrong shape
            ImportValidationError: Extracted data has blocking errors
        """
        session = self.get(session_id)
        self._require_stage(session, ImportStage.UPLOAD, "extract")
        if session.document is None:
            raise SessionIncompleteError("document", ImportStage.UPLOAD.value)

        logger.info(
            "import_extraction_started",
            session_id=session.id,
            provider=self.provider.name,
            file_name=session.document.file_name
        )

        data = await self.provider.extract(session.document, session.existing_categories)
        issues = validate(data)

        session.extracted_data = data
        session.issues = issues

        if has_blocking_errors(issues):
            self._save(session)
            raise ImportValidationError(
                [i.model_dump(mode="json") for i in issues],
                stage=ImportStage.UPLOAD.value
            )

        self._transition(session, ImportStage.PREVIEW, "extract")
        return self._save(session)

    def confirm_import(
        self,
        session_id: str,
        category_override_id: Optional[str] = None,
        edited_data: Optional[ExtractedMenuData] = None
    ) -> ImportSession:
        """
        Reconcile and commit the previewed data.

        Success moves to complete. A commit failure moves back to preview,
        keeps the partial outcome on the session and re-raises.

        Args:
            session_id: Session to import
            category_override_id: Pin every item to this category
            edited_data: Reviewed data replacing the extracted data

        Raises:
            InvalidStageTransitionError: If not in preview
            ImportValidationError: Edited data has blocking errors
            CategoryNotFoundError: Override is not in the menu group
            CategoryCreationFailedError: Commit stopped creating a category
            ItemInsertFailedError: Commit stopped inserting items
        """
        session = self.get(session_id)
        if not is_valid_stage_transition(session.stage, ImportStage.IMPORTING):
            raise InvalidStageTransitionError(session.stage.value, ImportStage.IMPORTING.value, "confirm_import")

        if edited_data is not None:
            issues = validate(edited_data)
            session.issues = issues
            if has_blocking_errors(issues):
                self._save(session)
                raise ImportValidationError(
                    [i.model_dump(mode="json") for i in issues],
                    stage=ImportStage.PREVIEW.value
                )
            session.extracted_data = edited_data

        if session.extracted_data is None:
            raise SessionIncompleteError("extracted_data", ImportStage.PREVIEW.value)

        override = category_override_id or session.category_override_id
        if self.settings.refresh_catalog_before_commit:
            session.existing_categories = self.catalog.list_categories(session.menu_group_id)

        reconciled = reconcile_all(
            session.extracted_data.categories,
            session.existing_categories,
            override_category_id=override
        )

        session.category_override_id = override
        self._transition(session, ImportStage.IMPORTING, "confirm_import")
        self._save(session)

        try:
            outcome = self.importer.commit(
                reconciled,
                restaurant_id=session.restaurant_id,
                menu_group_id=session.menu_group_id,
                document=session.document,
                extracted_data=session.extracted_data,
                category_override_id=override
            )
        except (CategoryCreationFailedError, ItemInsertFailedError) as e:
            if e.outcome is not None:
                session.outcome = ImportOutcome(**e.outcome)
            self._transition(session, ImportStage.PREVIEW, "confirm_import")
            self._save(session)
            raise

        session.outcome = outcome
        self._transition(session, ImportStage.COMPLETE, "confirm_import")

        logger.info(
            "import_session_completed",
            session_id=session.id,
            items_imported=outcome.items_imported,
            categories_created=outcome.categories_created
        )
        return self._save(session)

    def reset(self, session_id: str) -> ImportSession:
        """
        Return to setup from any stage.

        Clears the document, extracted data, issues, override, snapshot and
        outcome. Restaurant and menu group stay selected.
        """
        session = self.get(session_id)
        self._transition(session, ImportStage.SETUP, "reset")

        session.document = None
        session.document_kind = None
        session.extracted_data = None
        session.issues = []
        session.category_override_id = None
        session.existing_categories = []
        session.outcome = None

        return self._save(session)

    def abandon(self, session_id: str) -> None:
        """
        Discard a session. Earlier commits stay in the catalog.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        if not session_store.delete_session(session_id):
            raise SessionNotFoundError(session_id)
        logger.info("import_session_abandoned", session_id=session_id)


# Singleton instance
_session_service: Optional[ImportSessionService] = None


def get_import_session_service() -> ImportSessionService:
    """Get or create ImportSessionService instance."""
    global _session_service
    if _session_service is None:
        _session_service = ImportSessionService()
    return _session_service
