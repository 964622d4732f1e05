import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from retail_storage.config import settings
from retail_storage.dependencies.storage import get_app_storage, get_storage, storage_lifespan
from retail_storage.storage import DirectStorageBackend, FunctionsApiBackend, StorageBackend
from tests.fakes import FakeBlobServiceClient


@pytest.fixture
def direct_settings(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "direct")
    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")
    monkeypatch.setattr(settings, "AZURE_STORAGE_CONNECTION_STRING", "UseDevelopmentStorage=true")


class TestGetStorage:
    """Backend selection"""

    def test_direct(self, direct_settings):
        """Test the direct backend is the default choice"""
        assert isinstance(get_storage(), DirectStorageBackend)

    def test_functions(self, monkeypatch):
        """Test the remote backend is built from its settings"""
        monkeypatch.setattr(settings, "STORAGE_BACKEND", "functions")
        monkeypatch.setattr(settings, "FUNCTIONS_BASE_URL", "https://retail-func.test/api")

        assert isinstance(get_storage(), FunctionsApiBackend)

    def test_functions_without_url(self, monkeypatch):
        """Test the remote backend needs a base URL"""
        monkeypatch.setattr(settings, "STORAGE_BACKEND", "functions")
        monkeypatch.setattr(settings, "FUNCTIONS_BASE_URL", None)

        with pytest.raises(ValueError):
            get_storage()

    def test_unknown_backend(self, monkeypatch):
        """Test unsupported backends are refused"""
        monkeypatch.setattr(settings, "STORAGE_BACKEND", "s3")

        with pytest.raises(ValueError) as exc:
            get_storage()
        assert "s3" in str(exc.value)


def test_lifespan_provisions_and_injects(direct_settings, monkeypatch):
    """Test the app provisions storage at startup and injects it"""
    blob_service = FakeBlobServiceClient()
    monkeypatch.setattr(
        "retail_storage.dependencies.storage.get_storage",
        lambda: DirectStorageBackend(
            database_url=settings.DATABASE_URL,
            connection_string=settings.AZURE_STORAGE_CONNECTION_STRING,
            blob_service=blob_service,
        ),
    )
    app = FastAPI(lifespan=storage_lifespan)

    @app.get("/capabilities")
    async def capabilities(storage: StorageBackend = Depends(get_app_storage)):
        report = await storage.initialize()
        return {
            "file_share": storage.is_file_share_available(),
            "tables": report.is_available("tables"),
        }

    with TestClient(app) as client:
        response = client.get("/capabilities")

    assert response.status_code == 200
    assert response.json() == {"file_share": False, "tables": True}
    assert blob_service.closed
