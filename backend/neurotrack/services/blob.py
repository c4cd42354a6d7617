"""Download scan files from blob storage."""

import httpx

from neurotrack.core.exceptions import TransientIOError
from neurotrack.core.logging import get_logger

logger = get_logger(__name__)


class BlobFetcher:
    """Fetch uploaded files by their public storage URL."""

    def __init__(self, client: httpx.AsyncClient, timeout_seconds: float = 120.0) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds

    async def fetch(self, storage_path: str) -> bytes:
        """Download a file.

        Raises:
            TransientIOError: If the download fails
        """
        try:
            response = await self.client.get(storage_path, timeout=self.timeout_seconds)
        except httpx.HTTPError as e:
            raise TransientIOError(f"Failed to download file: {type(e).__name__}: {e}") from e

        if not response.is_success:
            raise TransientIOError(
                f"Failed to download file: {response.status_code} {response.reason_phrase}"
            )

        content = response.content
        logger.info("blob_downloaded", size_bytes=len(content))
        return content
