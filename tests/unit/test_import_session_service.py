"""
Unit tests for the import session state machine.

Run: pytest tests/unit/test_import_session_service.py -v
"""

import asyncio
import pytest

from models.import_session import ImportStage, ImportStatus, is_valid_stage_transition
from exceptions import (
    SessionNotFoundError,
    SessionIncompleteError,
    InvalidStageTransitionError,
    CategoryNotFoundError,
    UnsupportedFormatError,
    FileTooLargeError,
    ExtractionFailedError,
    ImportValidationError,
    ItemInsertFailedError,
)

from tests.factories import MenuDataFactory, DocumentFactory


def _upload(service, mock_supabase, rows, **configure):
    """Session in upload with the given categories in group-1."""
    mock_supabase.set_table_data("categories", rows)
    session = service.begin_session("rest-1")
    return service.configure(session.id, menu_group_id="group-1", **configure)


def _preview(service, mock_supabase, rows):
    """Session in preview after extracting a PNG menu."""
    session = _upload(service, mock_supabase, rows)
    doc = DocumentFactory.png()
    service.select_document(session.id, doc.file_name, doc.media_type, doc.content)
    return asyncio.run(service.extract(session.id))


class TestStageTransitions:
    """Tests for is_valid_stage_transition()"""

    def test_forward_path(self):
        """Should allow each forward step."""
        path = [ImportStage.SETUP, ImportStage.UPLOAD, ImportStage.PREVIEW, ImportStage.IMPORTING, ImportStage.COMPLETE]
        for current, new in zip(path, path[1:]):
            assert is_valid_stage_transition(current, new)

    def test_importing_can_fail_back_to_preview(self):
        """Should allow importing -> preview."""
        assert is_valid_stage_transition(ImportStage.IMPORTING, ImportStage.PREVIEW)

    def test_reset_from_any_stage(self):
        """Should allow returning to setup from every stage."""
        assert all(is_valid_stage_transition(stage, ImportStage.SETUP) for stage in ImportStage)

    def test_skipping_stages_rejected(self):
        """Should reject jumps and backward moves other than the failure path."""
        assert not is_valid_stage_transition(ImportStage.SETUP, ImportStage.PREVIEW)
        assert not is_valid_stage_transition(ImportStage.UPLOAD, ImportStage.IMPORTING)
        assert not is_valid_stage_transition(ImportStage.PREVIEW, ImportStage.UPLOAD)
        assert not is_valid_stage_transition(ImportStage.COMPLETE, ImportStage.PREVIEW)


class TestSetup:
    """Tests for begin_session() and configure()"""

    def test_begin_in_setup(self, session_service):
        """Should start a session in setup."""
        session = session_service.begin_session("rest-1")

        assert session.stage == ImportStage.SETUP
        assert session_service.get(session.id) is session

    def test_begin_requires_restaurant(self, session_service):
        """Should reject a blank restaurant."""
        with pytest.raises(SessionIncompleteError):
            session_service.begin_session("  ")

    def test_configure_snapshots_categories(self, session_service, mock_supabase, menu_group_categories):
        """Should store the group's categories and move to upload."""
        session = _upload(session_service, mock_supabase, menu_group_categories)

        assert session.stage == ImportStage.UPLOAD
        assert [c.name for c in session.existing_categories] == ["Starters", "Main Dishes", "Drinks"]

    def test_configure_requires_menu_group(self, session_service):
        """Should reject configuring without a menu group."""
        session = session_service.begin_session("rest-1")

        with pytest.raises(SessionIncompleteError) as exc_info:
            session_service.configure(session.id)

        assert exc_info.value.details["missing"] == "menu_group"

    def test_override_must_belong_to_group(self, session_service, mock_supabase, menu_group_categories):
        """Should reject an override outside the menu group and stay in setup."""
        mock_supabase.set_table_data("categories", menu_group_categories)
        session = session_service.begin_session("rest-1")

        with pytest.raises(CategoryNotFoundError):
            session_service.configure(session.id, menu_group_id="group-1", category_override_id="cat-elsewhere")

        assert session_service.get(session.id).stage == ImportStage.SETUP

    def test_configure_twice_rejected(self, session_service, mock_supabase, menu_group_categories):
        """Should not configure a session that already left setup."""
        session = _upload(session_service, mock_supabase, menu_group_categories)

        with pytest.raises(InvalidStageTransitionError) as exc_info:
            session_service.configure(session.id, menu_group_id="group-1")

        assert exc_info.value.status_code == 409

    def test_unknown_session(self, session_service):
        """Should raise SessionNotFoundError for unknown ids."""
        with pytest.raises(SessionNotFoundError):
            session_service.get("missing")


class TestUpload:
    """Tests for select_document() and extract()"""

    def test_unsupported_document_leaves_session_unchanged(self, session_service, mock_supabase, menu_group_categories):
        """Should reject a Word file and keep the session without a document."""
        session = _upload(session_service, mock_supabase, menu_group_categories)

        with pytest.raises(UnsupportedFormatError):
            session_service.select_document(session.id, "menu.docx", "application/msword", b"PK\x03\x04")

        session = session_service.get(session.id)
        assert session.stage == ImportStage.UPLOAD
        assert session.document is None

    def test_document_too_large(self, session_service, mock_supabase, menu_group_categories):
        """Should reject files above the upload limit."""
        session = _upload(session_service, mock_supabase, menu_group_categories)

        with pytest.raises(FileTooLargeError):
            session_service.select_document(session.id, "menu.png", "image/png", DocumentFactory.png(size=2 * 1024 * 1024).content)

    def test_extract_moves_to_preview(self, session_service, fake_provider, mock_supabase, menu_group_categories):
        """Should extract with the category snapshot as hints and move to preview."""
        session = _preview(session_service, mock_supabase, menu_group_categories)

        assert session.stage == ImportStage.PREVIEW
        assert session.extracted_data.total_items == 5
        assert session.issues == []
        _, hints = fake_provider.calls[0]
        assert [c.id for c in hints] == ["cat-starters", "cat-mains", "cat-drinks"]

    def test_extract_requires_document(self, session_service, mock_supabase, menu_group_categories):
        """Should not extract before a document is selected."""
        session = _upload(session_service, mock_supabase, menu_group_categories)

        with pytest.raises(SessionIncompleteError):
            asyncio.run(session_service.extract(session.id))

    def test_provider_failure_stays_in_upload(self, session_service, fake_provider, mock_supabase, menu_group_categories):
        """Should keep the session in upload when the provider fails."""
        fake_provider.error = ExtractionFailedError(provider="ocr", message="No readable menu text found")

        with pytest.raises(ExtractionFailedError):
            _preview(session_service, mock_supabase, menu_group_categories)

        session = next(iter(_sessions()))
        assert session.stage == ImportStage.UPLOAD
        assert session.extracted_data is None

    def test_zero_items_blocks_preview(self, session_service, fake_provider, mock_supabase, menu_group_categories):
        """Should stay in upload and keep the issues when nothing was extracted."""
        fake_provider.data = MenuDataFactory.create({})

        with pytest.raises(ImportValidationError) as exc_info:
            _preview(session_service, mock_supabase, menu_group_categories)

        assert exc_info.value.details["stage"] == "upload"
        session = next(iter(_sessions()))
        assert session.stage == ImportStage.UPLOAD
        assert session.extracted_data is not None
        assert session.issues[0].severity.value == "error"

    def test_warnings_do_not_block(self, session_service, fake_provider, mock_supabase, menu_group_categories):
        """Should reach preview with warnings attached."""
        fake_provider.data = MenuDataFactory.create({"Starters": [("Samosa", 0)]})

        session = _preview(session_service, mock_supabase, menu_group_categories)

        assert session.stage == ImportStage.PREVIEW
        assert session.issues[0].severity.value == "warning"


class TestConfirmImport:
    """Tests for confirm_import()"""

    def test_success_completes(self, session_service, mock_supabase, menu_group_categories):
        """Should import everything and move to complete."""
        session = _preview(session_service, mock_supabase, menu_group_categories)

        session = session_service.confirm_import(session.id)

        assert session.stage == ImportStage.COMPLETE
        assert session.outcome.status == ImportStatus.COMPLETED
        assert session.outcome.items_imported == 5
        assert len(mock_supabase.rows("menu_items")) == 5

    def test_confirm_from_upload_rejected(self, session_service, mock_supabase, menu_group_categories):
        """Should not import before preview."""
        session = _upload(session_service, mock_supabase, menu_group_categories)

        with pytest.raises(InvalidStageTransitionError):
            session_service.confirm_import(session.id)

    def test_failure_returns_to_preview_with_outcome(self, session_service, mock_supabase, menu_group_categories):
        """Should go back to preview and keep the partial outcome."""
        session = _preview(session_service, mock_supabase, menu_group_categories)
        mock_supabase.fail_insert("menu_items", on_call=2)

        with pytest.raises(ItemInsertFailedError) as exc_info:
            session_service.confirm_import(session.id)

        assert exc_info.value.category_name == "Main Dishes"
        session = session_service.get(session.id)
        assert session.stage == ImportStage.PREVIEW
        assert session.outcome.status == ImportStatus.PARTIAL
        assert session.outcome.failed_category == "Main Dishes"
        assert session.outcome.items_imported == 2

    def test_override_sends_everything_to_one_category(self, session_service, mock_supabase, menu_group_categories):
        """Should put every item into the override category."""
        session = _preview(session_service, mock_supabase, menu_group_categories)

        session_service.confirm_import(session.id, category_override_id="cat-mains")

        assert {row["category_id"] for row in mock_supabase.rows("menu_items")} == {"cat-mains"}
        assert mock_supabase.inserted("categories") == []

    def test_unknown_override_rejected(self, session_service, mock_supabase, menu_group_categories):
        """Should reject an override outside the snapshot and stay in preview."""
        session = _preview(session_service, mock_supabase, menu_group_categories)

        with pytest.raises(CategoryNotFoundError):
            session_service.confirm_import(session.id, category_override_id="cat-elsewhere")

        assert session_service.get(session.id).stage == ImportStage.PREVIEW

    def test_edited_data_imported(self, session_service, mock_supabase, menu_group_categories):
        """Should import the reviewed data instead of the extracted data."""
        session = _preview(session_service, mock_supabase, menu_group_categories)
        edited = MenuDataFactory.create({"Drinks": [("Passion Juice", 1500)]})

        session = session_service.confirm_import(session.id, edited_data=edited)

        assert session.outcome.items_imported == 1
        assert session.extracted_data == edited

    def test_edited_data_revalidated(self, session_service, mock_supabase, menu_group_categories):
        """Should refuse edited data with blocking errors and stay in preview."""
        session = _preview(session_service, mock_supabase, menu_group_categories)
        edited = MenuDataFactory.create({"Drinks": [("Passion Juice", -100)]})

        with pytest.raises(ImportValidationError) as exc_info:
            session_service.confirm_import(session.id, edited_data=edited)

        assert exc_info.value.details["stage"] == "preview"
        assert session_service.get(session.id).stage == ImportStage.PREVIEW
        assert mock_supabase.rows("menu_items") == []


class TestResetAndAbandon:
    """Tests for reset() and abandon()"""

    def test_reset_from_preview(self, session_service, mock_supabase, menu_group_categories):
        """Should clear the document and extraction but keep restaurant and group."""
        session = _preview(session_service, mock_supabase, menu_group_categories)

        session = session_service.reset(session.id)

        assert session.stage == ImportStage.SETUP
        assert session.document is None
        assert session.extracted_data is None
        assert session.existing_categories == []
        assert session.restaurant_id == "rest-1"
        assert session.menu_group_id == "group-1"

    def test_reset_after_complete_allows_new_import(self, session_service, mock_supabase, menu_group_categories):
        """Should allow a second run after reset; the first run's items stay."""
        session = _preview(session_service, mock_supabase, menu_group_categories)
        session_service.confirm_import(session.id)

        session = session_service.reset(session.id)
        session = session_service.configure(session.id)

        assert session.stage == ImportStage.UPLOAD
        assert session.outcome is None
        assert len(mock_supabase.rows("menu_items")) == 5

    def test_abandon(self, session_service):
        """Should delete the session."""
        session = session_service.begin_session("rest-1")

        session_service.abandon(session.id)

        with pytest.raises(SessionNotFoundError):
            session_service.get(session.id)

    def test_abandon_unknown(self, session_service):
        """Should raise for an unknown session."""
        with pytest.raises(SessionNotFoundError):
            session_service.abandon("missing")


def _sessions():
    """Live sessions in the store."""
    from services import session_store
    return [session for _, session in session_store._sessions.values()]
