"""Storage of chat file attachments.

Files are stored in: {UPLOAD_DIR}/{uuid}{ext} and served under
UPLOAD_URL_PREFIX.
"""
import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Dict, Optional

from ..config import MAX_UPLOAD_BYTES, UPLOAD_DIR, UPLOAD_URL_PREFIX
from ..errors import PayloadTooLargeError, ValidationError

logger = logging.getLogger(__name__)


def save_upload(filename: Optional[str], content: bytes, content_type: Optional[str] = None) -> Dict:
    """Write an uploaded file to disk and return its descriptor."""
    if not content:
        raise ValidationError("File is empty")
    if len(content) > MAX_UPLOAD_BYTES:
        raise PayloadTooLargeError("File size should be less than 10MB")

    original = Path(filename or "unnamed").name
    suffix = Path(original).suffix.lower()
    stored_name = f"{uuid.uuid4().hex}{suffix}"

    upload_dir = Path(UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    (upload_dir / stored_name).write_bytes(content)

    mime_type = content_type or mimetypes.guess_type(original)[0] or "application/octet-stream"
    logger.info("Stored upload %s (%d bytes) as %s", original, len(content), stored_name)

    return {
        'name': original,
        'type': mime_type,
        'size': len(content),
        'url': f"{UPLOAD_URL_PREFIX}/{stored_name}",
    }
