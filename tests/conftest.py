"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Add project directory to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Settings are read at import time
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime
from typing import Generator, Optional

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """
    Mock Supabase query builder with chainable methods.

    Reads apply eq filters, ordering and limit to the table rows.
    Inserts are appended to the table and recorded on the client.
    """

    def __init__(self, client: "MockSupabaseClient", table: str):
        self._client = client
        self._table = table
        self._filters: list[tuple[str, object]] = []
        self._order: Optional[tuple[str, bool]] = None
        self._limit: Optional[int] = None
        self._insert_data: Optional[list[dict]] = None
        self._is_single = False

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        rows = [data] if isinstance(data, dict) else list(data)
        self._insert_data = [dict(row) for row in rows]
        return self

    def eq(self, column, value):
        self._filters.append((column, value))
        return self

    def single(self):
        self._is_single = True
        return self

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def execute(self) -> MockSupabaseResponse:
        if self._insert_data is not None:
            return self._client._execute_insert(self._table, self._insert_data)

        self._client._check_select_failure(self._table)
        rows = [
            dict(row) for row in self._client._tables.get(self._table, [])
            if all(row.get(col) == value for col, value in self._filters)
        ]
        if self._order:
            column, desc = self._order
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            rows = sorted(present, key=lambda r: r[column], reverse=desc) + missing
        if self._limit is not None:
            rows = rows[:self._limit]
        if self._is_single:
            return MockSupabaseResponse(data=rows[0] if rows else None, count=len(rows))
        return MockSupabaseResponse(data=rows)


class MockSupabaseTable:
    """Mock Supabase table."""

    def __init__(self, client: "MockSupabaseClient", name: str):
        self._client = client
        self._name = name

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self._client, self._name).select(*args, **kwargs)

    def insert(self, data):
        return MockSupabaseQuery(self._client, self._name).insert(data)


class MockSupabaseClient:
    """
    Mock Supabase client with in-memory tables.

    Usage:
        mock_supabase.set_table_data("categories", [...])
        mock_supabase.fail_insert("menu_items", on_call=2)
        mock_supabase.inserted("menu_items")
    """

    def __init__(self):
        self._tables: dict[str, list[dict]] = {}
        self._insert_calls: dict[str, int] = {}
        self._insert_failures: dict[str, dict[int, str]] = {}
        self._select_failures: dict[str, str] = {}
        self.insert_log: list[tuple[str, list[dict]]] = []

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure rows for a table."""
        self._tables[table_name] = [dict(row) for row in data]

    def rows(self, table_name: str) -> list[dict]:
        """Current rows of a table."""
        return self._tables.get(table_name, [])

    def inserted(self, table_name: str) -> list[dict]:
        """Every row inserted into a table, in order."""
        return [row for name, batch in self.insert_log if name == table_name for row in batch]

    def insert_batches(self, table_name: str) -> list[list[dict]]:
        """Insert statements sent to a table, one list per statement."""
        return [batch for name, batch in self.insert_log if name == table_name]

    def fail_insert(self, table_name: str, on_call: int = 1, error: str = "connection reset"):
        """Make the Nth insert statement into a table raise."""
        self._insert_failures.setdefault(table_name, {})[on_call] = error

    def fail_select(self, table_name: str, error: str = "connection refused"):
        """Make every read of a table raise."""
        self._select_failures[table_name] = error

    def table(self, name: str) -> MockSupabaseTable:
        return MockSupabaseTable(self, name)

    def _check_select_failure(self, table_name: str):
        if table_name in self._select_failures:
            raise Exception(self._select_failures[table_name])

    def _execute_insert(self, table_name: str, rows: list[dict]) -> MockSupabaseResponse:
        call = self._insert_calls.get(table_name, 0) + 1
        self._insert_calls[table_name] = call

        error = self._insert_failures.get(table_name, {}).get(call)
        if error:
            raise Exception(error)

        table = self._tables.setdefault(table_name, [])
        stored = []
        for row in rows:
            row.setdefault("id", f"{table_name}-{len(table) + 1}")
            row["created_at"] = datetime.utcnow().isoformat() + "Z"
            table.append(row)
            stored.append(dict(row))

        self.insert_log.append((table_name, stored))
        return MockSupabaseResponse(data=stored)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("categories", [
                {"id": "cat-1", "name": "Starters", ...}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Usage:
        def test_something(mock_db, mock_supabase):
            mock_supabase.set_table_data("categories", [...])
            # Now any code using get_supabase_client() gets the mock
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.catalog_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.catalog_service.get_admin_client", return_value=None):
                with patch("services.import_history_service.get_supabase_client", return_value=mock_supabase):
                    yield mock_supabase


@pytest.fixture(autouse=True)
def clear_session_store():
    """Every test starts without import sessions."""
    from services import session_store
    session_store.clear_sessions()
    yield
    session_store.clear_sessions()


@pytest.fixture
def menu_group_categories() -> list:
    """Existing categories of menu group group-1."""
    from tests.factories import CategoryRowFactory
    return [
        CategoryRowFactory.create(id="cat-starters", name="Starters", display_order=0),
        CategoryRowFactory.create(id="cat-mains", name="Main Dishes", display_order=1),
        CategoryRowFactory.create(id="cat-drinks", name="Drinks", display_order=2),
    ]


# ===================
# EXTRACTION PROVIDER
# ===================

class FakeExtractionProvider:
    """Provider returning canned data (or raising) and recording its calls."""

    name = "fake"

    def __init__(self, data=None, error: Exception = None):
        self.data = data
        self.error = error
        self.calls = []

    async def extract(self, document, existing_categories):
        self.calls.append((document, list(existing_categories)))
        if self.error is not None:
            raise self.error
        return self.data


@pytest.fixture
def fake_provider() -> FakeExtractionProvider:
    from tests.factories import MenuDataFactory
    return FakeExtractionProvider(data=MenuDataFactory.create())


@pytest.fixture
def session_service(mock_db, fake_provider):
    """ImportSessionService over the mock database and fake provider."""
    from config import Settings
    from services.catalog_service import CatalogService
    from services.import_history_service import ImportHistoryService
    from services.menu_import_service import MenuImportService
    from services.import_session_service import ImportSessionService

    catalog = CatalogService()
    importer = MenuImportService(catalog=catalog, history=ImportHistoryService())
    settings = Settings(
        supabase_url="https://test-project.supabase.co",
        supabase_key="test-anon-key",
        max_upload_bytes=1024 * 1024,
    )
    return ImportSessionService(
        provider=fake_provider,
        catalog=catalog,
        importer=importer,
        settings=settings
    )


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client_with_mock_db(session_service, mock_supabase):
    """
    Create FastAPI test client with mocked database and provider.

    Usage:
        def test_endpoint(test_client_with_mock_db, mock_supabase):
            mock_supabase.set_table_data("categories", [...])
            response = test_client_with_mock_db.post("/api/menu-import/sessions", ...)
    """
    from fastapi.testclient import TestClient
    from main import app
    from services.import_history_service import ImportHistoryService

    with patch("routes.menu_import.get_import_session_service", return_value=session_service):
        with patch("routes.menu_import.get_import_history_service", return_value=ImportHistoryService()):
            yield TestClient(app)
