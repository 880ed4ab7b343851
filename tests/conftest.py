"""Pytest configuration and fixtures for the invoice workflow test suite.

This module provides shared fixtures and test configuration for all test modules.
"""

from typing import Dict, List
from unittest.mock import Mock

import pytest

from invoice_workflow.database import (
    DatabaseManager,
    InboxRepository,
    JobRepository,
    SettingsRepository,
    TemplateRepository,
    UserRepository,
)
from invoice_workflow.matching import TemplateMatcher
from invoice_workflow.models import FieldType, SuggestedField, UserRole
from invoice_workflow.storage import BlobStorage

from tests.helpers import FakeEmbeddingService, make_chat_response, unit_vector


@pytest.fixture
def db_manager(tmp_path) -> DatabaseManager:
    """Create a DatabaseManager backed by a temporary SQLite file."""
    manager = DatabaseManager(database_url=f"sqlite:///{tmp_path / 'test.db'}")
    yield manager
    manager.dispose()


@pytest.fixture
def job_repository(db_manager: DatabaseManager) -> JobRepository:
    """JobRepository that resolves storage ids to fake file URLs."""
    return JobRepository(db_manager, url_resolver=lambda sid: f"file:///docs/{sid}")


@pytest.fixture
def template_repository(db_manager: DatabaseManager) -> TemplateRepository:
    return TemplateRepository(db_manager)


@pytest.fixture
def settings_repository(db_manager: DatabaseManager) -> SettingsRepository:
    return SettingsRepository(db_manager)


@pytest.fixture
def inbox_repository(db_manager: DatabaseManager) -> InboxRepository:
    return InboxRepository(db_manager)


@pytest.fixture
def user_repository(db_manager: DatabaseManager) -> UserRepository:
    return UserRepository(db_manager)


@pytest.fixture
def storage(tmp_path) -> BlobStorage:
    return BlobStorage(tmp_path / "blobs")


@pytest.fixture
def fake_embedder() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def template_matcher(template_repository, fake_embedder) -> TemplateMatcher:
    return TemplateMatcher(template_repository, fake_embedder)


@pytest.fixture
def people(user_repository) -> Dict[str, int]:
    """A client company with a client user, two compilers and an admin."""
    client_id = user_repository.create_client("Globex")
    return {
        "client_id": client_id,
        "client_user": user_repository.create_user("Carol", "carol@globex.test",
                                                   UserRole.CLIENT, client_id),
        "compiler": user_repository.create_user("Cody", "cody@compile.test", UserRole.COMPILER),
        "other_compiler": user_repository.create_user("Olive", "olive@compile.test",
                                                      UserRole.COMPILER),
        "admin": user_repository.create_user("Ada", "ada@compile.test", UserRole.ADMIN),
    }


@pytest.fixture
def make_job(job_repository, people):
    """Factory creating a RECEIVED job with one or more PDF files."""
    def _make(title: str = "March invoices", files: int = 1, total_price: int = 1000) -> int:
        descriptors = [
            {"fileName": f"invoice-{i}.pdf", "fileStorageId": f"blob{i}.pdf",
             "fileSize": 2048, "fileType": "application/pdf"}
            for i in range(files)
        ]
        return job_repository.create_job(title, people["client_id"], total_price, 24,
                                         files=descriptors)
    return _make


@pytest.fixture
def header_fields() -> List[SuggestedField]:
    return [
        SuggestedField(name="invoiceNumber", label="Invoice Number",
                       description="Invoice identifier", required=True),
        SuggestedField(name="invoiceDate", label="Invoice Date", type=FieldType.DATE,
                       description="Date of issue"),
        SuggestedField(name="taxAmount", label="Tax", type=FieldType.NUMBER,
                       description="Total tax"),
        SuggestedField(name="total", label="Total", type=FieldType.NUMBER,
                       description="Amount due", required=True),
    ]


@pytest.fixture
def line_item_fields() -> List[SuggestedField]:
    return [
        SuggestedField(name="description", label="Description", description="Item description"),
        SuggestedField(name="quantity", label="Qty", type=FieldType.NUMBER),
        SuggestedField(name="lineTotal", label="Line Total", type=FieldType.NUMBER),
    ]


@pytest.fixture
def extracted_payload() -> Dict:
    return {
        "header": {"invoiceNumber": "INV-001", "invoiceDate": "2024-03-01",
                   "taxAmount": 10, "total": 110},
        "lineItems": [
            {"description": "Widget", "quantity": 2, "lineTotal": 50},
            {"description": "Gadget", "quantity": 1, "lineTotal": 50},
        ],
    }


@pytest.fixture
def mock_openai_client() -> Mock:
    """Mock OpenAI client for testing the extraction oracle and embeddings."""
    client = Mock()
    client.chat.completions.create.return_value = make_chat_response('{"supplier": "Acme Pty Ltd"}')
    embedding = Mock()
    embedding.embedding = unit_vector(0)
    client.embeddings.create.return_value = Mock(data=[embedding])
    return client


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key-123")
    monkeypatch.setenv("LANGFUSE_PUBLIC_KEY", "test-public")
    monkeypatch.setenv("LANGFUSE_SECRET_KEY", "test-secret")
    monkeypatch.setenv("LANGFUSE_TRACING_ENABLED", "false")
