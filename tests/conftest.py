import io
import uuid

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from envwatch.config.settings import Settings
from envwatch.exceptions import DuplicateTicketError
from envwatch.main import create_app
from envwatch.models.report import AIAnalysis, Report
from envwatch.stores.admins import InMemoryCredentialStore
from envwatch.stores.reports import ReportStore

ADMIN_PASSWORD = "rahasia-admin-123"


class FakeReportStore(ReportStore):
    """In-memory stand-in for MongoReportStore."""

    def __init__(self, duplicate_inserts: int = 0):
        self.reports = {}
        self.duplicate_inserts = duplicate_inserts
        self.insert_attempts = []

    async def insert(self, report):
        self.insert_attempts.append(report.ticket_id)
        if self.duplicate_inserts > 0:
            self.duplicate_inserts -= 1
            raise DuplicateTicketError(f"Ticket {report.ticket_id} already exists")
        if any(r.ticket_id == report.ticket_id for r in self.reports.values()):
            raise DuplicateTicketError(f"Ticket {report.ticket_id} already exists")
        saved = report.model_copy(update={"id": uuid.uuid4().hex[:24]})
        self.reports[saved.id] = saved
        return saved

    async def find_by_ticket(self, ticket_id):
        return next((r for r in self.reports.values() if r.ticket_id == ticket_id), None)

    async def list_all(self):
        return sorted(self.reports.values(), key=lambda r: r.created_at, reverse=True)

    async def update_fields(self, report_id, fields):
        current = self.reports.get(report_id) or await self.find_by_ticket(report_id)
        if current is None:
            return None
        updated = Report.model_validate({**current.to_document(), **fields, "id": current.id})
        self.reports[current.id] = updated
        return updated


class FakeStorage:
    def __init__(self, url="https://cdn.example.com/reports/photo.png", error=None):
        self.url = url
        self.error = error
        self.uploads = []

    def upload(self, data, content_type="image/jpeg", extension="jpg"):
        if self.error:
            raise self.error
        self.uploads.append((len(data), content_type, extension))
        return self.url


class FakeClassifier:
    def __init__(self, analysis=None, error=None):
        self.analysis = analysis or AIAnalysis(detected=True, class_="plastic bottle", confidence=0.87)
        self.error = error
        self.calls = []

    def analyze_image(self, image_url):
        self.calls.append(image_url)
        if self.error:
            raise self.error
        return self.analysis


@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), color=(34, 139, 34)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        admin_username="admin",
        admin_password=ADMIN_PASSWORD,
        credential_backend="memory",
        demo_mode=True,
        secret_key="test-secret-key-for-signing-tokens",
    )


@pytest.fixture
def report_store():
    return FakeReportStore()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def app(settings, report_store, storage, classifier):
    return create_app(
        settings,
        report_store=report_store,
        credential_store=InMemoryCredentialStore(),
        storage=storage,
        classifier=classifier,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_token(client):
    response = client.post("/api/admin/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    return response.json()["token"]
