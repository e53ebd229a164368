"""
In-memory attachment storage.

Implements the AttachmentStorage port with an optional simulated
latency. A blob is recorded only after the simulated I/O finishes, so a
cancelled upload leaves nothing behind.
"""

from typing import Dict, List, Optional
import asyncio
import logging
import uuid

from src.core.shared.exceptions import TransientFailureError
from src.core.tickets.dtos import FileUploadDTO

logger = logging.getLogger(__name__)


class InMemoryAttachmentStorage:
    """
    Blob store kept in a dict, keyed by URL.

    Attributes:
        latency: Seconds each store waits before recording the blob

    Example:
        storage = InMemoryAttachmentStorage(latency=0.5)
        url = await storage.store("TK-001", upload)
        await storage.discard(url)
    """

    URL_PREFIX = "memory://attachments"

    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._blobs: Dict[str, bytes] = {}
        self._pending_failures: List[str] = []

    async def store(self, ticket_id: str, upload: FileUploadDTO) -> str:
        url = f"{self.URL_PREFIX}/{ticket_id}/{uuid.uuid4().hex[:12]}/{upload.file_name}"

        try:
            if self.latency:
                await asyncio.sleep(self.latency)
        except asyncio.CancelledError:
            logger.info(f"Upload of {upload.file_name} to {ticket_id} cancelled")
            raise

        if self._pending_failures:
            reason = self._pending_failures.pop(0)
            logger.warning(f"Storage failure for {upload.file_name}: {reason}")
            raise TransientFailureError(f"Could not store {upload.file_name}: {reason}")

        self._blobs[url] = upload.content or b""
        logger.debug(f"Stored {upload.file_name} ({upload.size} bytes) at {url}")
        return url

    async def discard(self, url: str) -> None:
        if self._blobs.pop(url, None) is not None:
            logger.debug(f"Discarded blob {url}")

    def fail_next(self, count: int = 1, reason: str = "storage unavailable") -> None:
        """Make the next `count` stores raise TransientFailureError."""
        self._pending_failures.extend([reason] * count)

    def read(self, url: str) -> Optional[bytes]:
        return self._blobs.get(url)

    @property
    def urls(self) -> List[str]:
        return list(self._blobs)

    def __len__(self) -> int:
        return len(self._blobs)

    def __contains__(self, url: str) -> bool:
        return url in self._blobs
