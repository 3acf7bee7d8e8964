"""Supabase Storage client for downloading originals and uploading processed media."""

from pathlib import Path
from typing import AsyncIterator
from urllib.parse import quote

import httpx

from weafrica_media.services.exceptions import (
    EmptyDownloadError,
    StorageAuthError,
    StorageNetworkError,
    StorageNotFoundError,
    StorageRateLimitError,
    StorageUnavailableError,
    StorageValidationError,
)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024
UPLOAD_CHUNK_SIZE = 1024 * 1024


async def iter_file(file_path: Path, chunk_size: int = UPLOAD_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield a local file in chunks of chunk_size bytes."""
    with open(file_path, "rb") as fh:
        while chunk := fh.read(chunk_size):
            yield chunk


def raise_for_storage_status(response: httpx.Response, action: str, path: str) -> None:
    """Translate a non-2xx storage response into a storage error.

    Supabase Storage reports some missing objects as 400 with a "not found"
    body, so those are classified as not found too.

    Raises:
        TransientError: Rate limit (429), service unavailable (5xx)
        PermanentError: Auth failure (401, 403), not found, other 4xx
    """
    if response.is_success:
        return

    code = response.status_code
    detail = response.text[:500]

    if code == 429:
        raise StorageRateLimitError(f"Failed to {action} {path}: rate limit exceeded")
    elif code >= 500:
        raise StorageUnavailableError(
            f"Failed to {action} {path}: storage unavailable ({code}): {detail}"
        )
    elif code in (401, 403):
        raise StorageAuthError(
            f"Failed to {action} {path}: unauthorized ({code}). "
            "Check SUPABASE_SERVICE_ROLE_KEY and the bucket policies."
        )
    elif code == 404 or (code == 400 and "not found" in detail.lower()):
        raise StorageNotFoundError(f"Failed to {action} {path}: object not found")

    raise StorageValidationError(f"Failed to {action} {path}: bad request ({code}): {detail}")


class StorageClient:
    """Object storage client for the Supabase Storage REST API."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str = "media",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize storage client.

        Args:
            base_url: Supabase project URL (from SUPABASE_URL env var)
            service_key: Service role key (from SUPABASE_SERVICE_ROLE_KEY env var)
            bucket: Storage bucket holding originals and processed media
            timeout: HTTP timeout in seconds for each request
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.timeout = timeout
        self.transport = transport
        self.headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def object_url(self, path: str) -> str:
        """Return the REST URL of an object in the configured bucket."""
        return (
            f"{self.base_url}/storage/v1/object/{quote(self.bucket)}/"
            f"{quote(path.lstrip('/'), safe='/')}"
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def download_to_file(self, path: str, file_path: Path) -> int:
        """Stream an object to a local file.

        Args:
            path: Storage key inside the bucket
            file_path: Local destination (overwritten)

        Returns:
            Number of bytes written

        Raises:
            EmptyDownloadError: Object exists but has no content
            TransientError: Network timeout, rate limit (429), service unavailable (5xx)
            PermanentError: Invalid key (401), forbidden (403), not found, bad request
        """
        size = 0
        try:
            async with self._client() as client:
                async with client.stream(
                    "GET", self.object_url(path), headers=self.headers
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        raise_for_storage_status(response, "download", path)

                    with open(file_path, "wb") as fh:
                        async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                            fh.write(chunk)
                            size += len(chunk)

        except httpx.TimeoutException as e:
            raise StorageNetworkError(f"Failed to download {path}: timeout: {e}")
        except httpx.HTTPError as e:
            raise StorageNetworkError(f"Failed to download {path}: network error: {e}")

        if size == 0:
            raise EmptyDownloadError(f"Failed to download {path}: object is empty")

        return size

    async def upload_file(
        self, path: str, file_path: Path, content_type: str, upsert: bool = True
    ) -> None:
        """Upload a local file, overwriting any existing object by default.

        Args:
            path: Storage key inside the bucket
            file_path: Local file to upload
            content_type: MIME type stored with the object
            upsert: Overwrite an existing object at the same key

        Raises:
            TransientError: Network timeout, rate limit (429), service unavailable (5xx)
            PermanentError: Invalid key (401), forbidden (403), bad request
        """
        headers = {
            **self.headers,
            "Content-Type": content_type,
            "x-upsert": "true" if upsert else "false",
            "Content-Length": str(file_path.stat().st_size),
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    self.object_url(path),
                    headers=headers,
                    content=iter_file(file_path, UPLOAD_CHUNK_SIZE),
                )
                raise_for_storage_status(response, "upload", path)

        except httpx.TimeoutException as e:
            raise StorageNetworkError(f"Failed to upload {path}: timeout: {e}")
        except httpx.HTTPError as e:
            raise StorageNetworkError(f"Failed to upload {path}: network error: {e}")
