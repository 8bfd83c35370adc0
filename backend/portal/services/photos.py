from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Optional

from portal.core.catalog import MeetCatalog
from portal.core.errors import PhotoRejected

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?;base64,(?P<payload>.*)$", re.IGNORECASE | re.DOTALL)


@dataclass(frozen=True)
class PhotoFile:
    filename: str
    mime_type: str
    content: bytes


def encode_photo(content: bytes, content_type: Optional[str], catalog: MeetCatalog) -> str:
    """Check a captured photo and return it as a data URL."""
    mime = (content_type or "").lower()
    if mime not in catalog.photo_mime_types:
        raise PhotoRejected("Profile photo must be JPG or PNG")
    if len(content) > catalog.photo_max_bytes:
        raise PhotoRejected(f"Profile photo must be <= {catalog.photo_max_bytes // 1024} KB")
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


def _safe_name(text: str) -> str:
    return re.sub(r"[^a-z0-9_\-.]", "_", text or "participant", flags=re.IGNORECASE)[:60]


def decode_photo(payload: str, team_id: str, name: str, key: str) -> PhotoFile:
    """Turn a stored photo (data URL or bare base64, assumed JPEG) into a downloadable file."""
    if not payload:
        raise PhotoRejected("No photo available for this participant.")
    match = _DATA_URL.match(payload)
    if match:
        mime = (match.group("mime") or "image/jpeg").lower()
        raw = match.group("payload")
    else:
        mime, raw = "image/jpeg", payload
    try:
        content = base64.b64decode(raw, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise PhotoRejected(f"Stored photo is not valid base64: {exc}")
    ext = mime.split("/")[-1].split("+")[0] or "jpg"
    if ext == "jpeg":
        ext = "jpg"
    filename = f"{team_id or 'team'}_{_safe_name(name)}_{_safe_name(key)}.{ext}"
    return PhotoFile(filename=filename, mime_type=mime, content=content)
