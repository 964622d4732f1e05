"""
Blob store on Azure Blob Storage.

Each container has a fixed public access level. Public containers hold
product images under random names and hand out URLs; private containers
hold documents under timestamp-prefixed names and hand out the name only.
"""
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from retail_storage.models import FileSource
from retail_storage.utils.ids import document_blob_name, image_blob_name

PUBLIC_BLOB_ACCESS = "blob"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class BlobStore:
    """
    Azure Blob Storage containers.

    Attributes:
        container_access: Container name -> public access level
            ("blob" for public-readable, None for private)
    """

    def __init__(self, service: BlobServiceClient, container_access: dict[str, str | None]):
        self.service = service
        self.container_access = dict(container_access)

    async def create_container(self, container: str) -> None:
        """Create a container with its configured access level, if missing."""
        access = self.container_access.get(container)
        try:
            await self.service.get_container_client(container).create_container(
                public_access=access
            )
        except ResourceExistsError:
            pass
        self.container_access.setdefault(container, access)

    def is_public(self, container: str) -> bool:
        return self.container_access.get(container) is not None

    async def upload(self, file: FileSource, container: str) -> str:
        """
        Upload a file, naming it by the container's access level.

        Containers that were not provisioned up front are created private.

        Returns:
            Blob URL for public containers, blob name for private ones
        """
        if container not in self.container_access:
            await self.create_container(container)

        public = self.is_public(container)
        blob_name = image_blob_name(file.filename) if public else document_blob_name(file.filename)
        blob_client = self.service.get_container_client(container).get_blob_client(blob_name)

        data = await file.read()
        await blob_client.upload_blob(
            data,
            overwrite=True,
            content_settings=ContentSettings(content_type=file.content_type or DEFAULT_CONTENT_TYPE),
        )
        return blob_client.url if public else blob_name

    async def delete(self, blob_name: str, container: str) -> None:
        """Delete a blob; a missing blob is not an error."""
        blob_client = self.service.get_container_client(container).get_blob_client(blob_name)
        try:
            await blob_client.delete_blob()
        except ResourceNotFoundError:
            pass

    async def close(self) -> None:
        await self.service.close()
