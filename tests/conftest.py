import pytest
import pytest_asyncio

from retail_storage.models import Customer, Product
from retail_storage.storage.direct import DirectStorageBackend
from tests.fakes import FakeBlobServiceClient

# Any connection string without the emulator sentinel enables the file share
PRODUCTION_CONNECTION_STRING = (
    "DefaultEndpointsProtocol=https;AccountName=teststorage;"
    "AccountKey=dGVzdGtleQ==;EndpointSuffix=core.windows.net"
)
DEVELOPMENT_CONNECTION_STRING = "UseDevelopmentStorage=true"


@pytest.fixture
def blob_service():
    return FakeBlobServiceClient()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'retail.db'}"


@pytest_asyncio.fixture
async def storage(tmp_path, database_url, blob_service):
    """Direct backend on a temporary SQLite database and file share root."""
    backend = DirectStorageBackend(
        database_url=database_url,
        connection_string=PRODUCTION_CONNECTION_STRING,
        file_share_root=str(tmp_path / "fileshares"),
        blob_service=blob_service,
    )
    yield backend
    await backend.close()


@pytest_asyncio.fixture
async def dev_storage(tmp_path, database_url):
    """Direct backend pointed at the storage emulator."""
    backend = DirectStorageBackend(
        database_url=database_url,
        connection_string=DEVELOPMENT_CONNECTION_STRING,
        file_share_root=str(tmp_path / "fileshares"),
        blob_service=FakeBlobServiceClient(),
    )
    yield backend
    await backend.close()


@pytest.fixture
def customer():
    return Customer(
        name="Thandi",
        surname="Nkosi",
        username="thandi.n",
        email="thandi@example.com",
        shipping_address="12 Long Street, Cape Town",
    )


@pytest.fixture
def widget():
    return Product(
        name="Widget",
        description="A very useful widget",
        price="19.99",
        stock_available=10,
    )
