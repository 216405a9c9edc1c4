"""Storage backends for generated report artifacts."""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from site_evaluator.core.credentials import CredentialStore
from site_evaluator.core.exceptions import StorageError
from site_evaluator.repositories.report_repository import ReportBlobRepository
from site_evaluator.services.base_service import BaseService
from site_evaluator.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BlobStore(ABC):
    """Keyed binary storage for report files."""

    @abstractmethod
    async def put(self, key: str, content: bytes, content_type: str) -> None:
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None if the key does not exist."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...


class DatabaseBlobStore(BaseService, BlobStore):
    """Keeps report binaries in the report_blobs table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__(session_factory)

    async def put(self, key: str, content: bytes, content_type: str) -> None:
        async with self.unit_of_work() as session:
            await ReportBlobRepository(session).put(key, content, content_type)

    async def get(self, key: str) -> Optional[bytes]:
        async with self.unit_of_work() as session:
            blob = await ReportBlobRepository(session).get_by_key(key)
            return blob.content if blob is not None else None

    async def delete(self, key: str) -> None:
        async with self.unit_of_work() as session:
            await ReportBlobRepository(session).delete_by_key(key)


class SupabaseBlobStore(BlobStore):
    """Stores report binaries in a Supabase storage bucket."""

    def __init__(
        self,
        url: str,
        bucket: str,
        credentials: CredentialStore,
        timeout: float = 60.0,
    ):
        self.url = url.rstrip("/")
        self.bucket = bucket
        self.credentials = credentials
        self.timeout = timeout
        self.base_api_url = f"{self.url}/storage/v1"

    def _headers(self) -> dict:
        key = self.credentials.require("supabase")
        return {
            "Authorization": f"Bearer {key}",
            "apikey": key,
        }

    def _object_url(self, key: str) -> str:
        return f"{self.base_api_url}/object/{self.bucket}/{key}"

    async def put(self, key: str, content: bytes, content_type: str) -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self._object_url(key),
                    headers={**self._headers(), "Content-Type": content_type, "x-upsert": "true"},
                    content=content,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error uploading report to Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage upload error: {str(e)}", original_error=e)

        if response.status_code != 200:
            LOGGER.error(
                f"Failed to upload report to Supabase: {response.text}",
                extra={"bucket": self.bucket, "path": key, "status_code": response.status_code},
            )
            raise StorageError(f"Upload failed: {response.text}")

    async def get(self, key: str) -> Optional[bytes]:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    self._object_url(key),
                    headers=self._headers(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error downloading report from Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage download error: {str(e)}", original_error=e)

        if response.status_code in (400, 404):
            return None
        if response.status_code != 200:
            LOGGER.error(
                f"Failed to download report from Supabase: {response.text}",
                extra={"bucket": self.bucket, "path": key, "status_code": response.status_code},
            )
            raise StorageError(f"Download failed: {response.text}")
        return response.content

    async def delete(self, key: str) -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.delete(
                    self._object_url(key),
                    headers=self._headers(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Error deleting report from Supabase: {str(e)}", exc_info=True)
            raise StorageError(f"Storage delete error: {str(e)}", original_error=e)

        if response.status_code not in (200, 204, 404):
            LOGGER.warning(
                "Failed to delete report from Supabase",
                extra={"bucket": self.bucket, "path": key, "status_code": response.status_code},
            )
