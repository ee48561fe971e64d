from pathlib import Path
from typing import Protocol
import logging
import secrets

logger = logging.getLogger(__name__)

class AttachmentStore(Protocol):
    def save(self, filename: str, data: bytes) -> str:
        """Persist the bytes and return a URL reference to them."""
        ...

class LocalAttachmentStore:
    """Writes attachments under a directory and serves them from ``/uploads``."""

    def __init__(self, root: str, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def save(self, filename: str, data: bytes) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        stored_name = f"{secrets.token_hex(8)}_{Path(filename).name or 'attachment'}"
        (self.root / stored_name).write_bytes(data)
        logger.info(f"Stored attachment {stored_name} ({len(data)} bytes)")
        return f"{self.url_prefix}/{stored_name}"
