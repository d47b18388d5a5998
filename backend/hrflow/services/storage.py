import base64
import binascii
import re
import uuid
from pathlib import Path

import structlog

from .. import config

logger = structlog.get_logger()

DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<data>.+)$", re.DOTALL)

EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "application/pdf": ".pdf",
    "text/html": ".html",
}


def decode_blob(blob) -> tuple[bytes, str | None]:
    """Bytes plus mime type; data URLs are unpacked, other text is kept as-is."""
    if isinstance(blob, bytes):
        return blob, None
    match = DATA_URL_RE.match(blob)
    if match:
        try:
            return base64.b64decode(match.group("data"), validate=True), match.group("mime")
        except binascii.Error:
            pass
    return blob.encode("utf-8"), None


class LocalStorage:
    """Object storage on the local filesystem; ``store`` returns a URL."""

    def __init__(self, root: Path | str = config.STORAGE_DIR, base_url: str = config.STORAGE_BASE_URL):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def store(self, blob, *, folder: str = "misc", filename: str | None = None, content_type: str | None = None) -> str:
        data, detected = decode_blob(blob)
        content_type = content_type or detected
        name = filename or f"{uuid.uuid4().hex}{EXTENSIONS.get(content_type or '', '.bin')}"
        if "/" in name or "\\" in name or "/" in folder or "\\" in folder:
            raise ValueError("folder and filename should be plain names")

        target_dir = self.root / folder
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / name).write_bytes(data)

        url = f"{self.base_url}/{folder}/{name}"
        logger.info("Stored object", url=url, size=len(data))
        return url
