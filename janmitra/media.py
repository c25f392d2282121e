"""Media store: keeps uploaded issue photos on local disk.

Files are written to UPLOAD_DIR under an opaque key
``<epoch-ms>-<7 random hex chars><original extension>`` and served by the
static mount at ``/uploads``.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from pathlib import Path

logger = logging.getLogger(__name__)

UPLOADS_URL_PREFIX = "/uploads"


def make_storage_key(original_name: str | None) -> str:
    ext = Path(original_name or "").suffix.lower()
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}{ext}"


class LocalMediaStore:
    def __init__(self, base_dir: str | Path, url_prefix: str = UPLOADS_URL_PREFIX):
        self.base_dir = Path(base_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _save_sync(self, data: bytes, original_name: str | None) -> str:
        key = make_storage_key(original_name)
        (self.base_dir / key).write_bytes(data)
        return key

    async def save(self, data: bytes, original_name: str | None = None) -> str:
        """Store image bytes and return the storage key."""
        key = await asyncio.to_thread(self._save_sync, data, original_name)
        logger.info(f"Stored upload {original_name!r} as {key} ({len(data)} bytes)")
        return key

    async def delete(self, key: str) -> None:
        """Remove a stored object; a missing file is not an error."""
        path = self.base_dir / key
        await asyncio.to_thread(path.unlink, missing_ok=True)
        logger.info(f"Removed upload {key}")

    def public_url(self, key: str) -> str:
        return f"{self.url_prefix}/{key}"
