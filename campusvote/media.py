# campusvote/media.py
# Candidate photo storage: base64 payloads written to UPLOAD_DIR.
import base64
import binascii
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from campusvote.config import UPLOAD_DIR, UPLOAD_URL_PREFIX
from campusvote.exceptions import ValidationFailed

logger = logging.getLogger(__name__)

_MAGIC_EXTENSIONS = (
    (b"\x89PNG\r\n\x1a\n", ".png"),
    (b"GIF87a", ".gif"),
    (b"GIF89a", ".gif"),
    (b"\xff\xd8\xff", ".jpg"),
)


def _sniff_extension(data: bytes) -> str:
    for magic, ext in _MAGIC_EXTENSIONS:
        if data.startswith(magic):
            return ext
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    raise ValidationFailed("Unsupported image format; use JPEG, PNG, GIF or WebP")


def decode_base64_image(base64_str: str) -> Tuple[bytes, str]:
    """
    Decode a base64 image string.
    - base64_str: may be raw base64 or a data URL (data:image/jpeg;base64,...)
    Returns: (bytes, extension)
    """
    if not base64_str or not base64_str.strip():
        raise ValidationFailed("Empty image payload")

    s = base64_str.strip()
    # if data URL present, strip header
    if s.startswith("data:"):
        comma = s.find(",")
        if comma != -1:
            s = s[comma + 1:]

    # sanitize whitespace/newlines
    s = "".join(s.split())

    try:
        data = base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationFailed(f"Invalid base64 image: {e}") from e

    return data, _sniff_extension(data)


def save_base64_image(
    base64_str: str, prefix: str = "candidate", upload_dir: Optional[str] = None
) -> str:
    """Save a base64 image to disk and return its public reference."""
    data, ext = decode_base64_image(base64_str)

    target_dir = Path(upload_dir or UPLOAD_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)

    stamp = int(datetime.now(timezone.utc).timestamp() * 1000)
    filename = f"{prefix}_{stamp}_{uuid.uuid4().hex[:8]}{ext}"
    filepath = target_dir / filename
    with open(filepath, "wb") as f:
        f.write(data)

    logger.info(f"Stored candidate photo {filename} ({len(data)} bytes)")
    return f"{UPLOAD_URL_PREFIX}/{filename}"
