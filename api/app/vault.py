"""Media storage for uploaded images, videos and avatars.

Files live in a sub-vault per media kind inside VAULT_LOCATION, using a
hash-based folder structure derived from the file UUID so no single folder
collects too many files.

Example:
    If the file id is "a1b2c3d4-e5f6-7890-abcd-ef1234567890" and it hashes to
    "9f86d0...", an image is stored at
    VAULT_LOCATION/image/9f/86/d0/a1b2c3d4-e5f6-7890-abcd-ef1234567890.png

Bytes are stored as uploaded (no re-encoding) so animated GIF/WEBP stay animated.
"""

from __future__ import annotations

import hashlib
import logging
import mimetypes
import os
import uuid
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse
from uuid import UUID

from .settings import (
    BOLD_AVATAR_SIZE_LIMIT_BYTES,
    BOLD_IMAGE_SIZE_LIMIT_BYTES,
    BOLD_VIDEO_SIZE_LIMIT_BYTES,
)

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/api/vault"

# Extensions for the common types; anything else under an accepted prefix
# falls back to the mimetypes registry.
KNOWN_EXTENSIONS: dict[str, str] = {
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/heic": ".heic",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
}


class MediaRejected(ValueError):
    """Upload refused because of its type or size."""


@dataclass(frozen=True)
class MediaKind:
    name: str
    mime_prefix: str
    max_bytes: int


MEDIA_KINDS: dict[str, MediaKind] = {
    "image": MediaKind("image", "image/", BOLD_IMAGE_SIZE_LIMIT_BYTES),
    "video": MediaKind("video", "video/", BOLD_VIDEO_SIZE_LIMIT_BYTES),
    "avatar": MediaKind("avatar", "image/", BOLD_AVATAR_SIZE_LIMIT_BYTES),
}


def get_vault_location() -> Path:
    """Get the vault location from environment variable."""
    vault_path = os.environ.get("VAULT_LOCATION")
    if not vault_path:
        raise ValueError("VAULT_LOCATION environment variable is not set")
    return Path(vault_path)


def hash_file_id(file_id: UUID) -> str:
    """Hash the file UUID using SHA256 for folder structure derivation."""
    return hashlib.sha256(str(file_id).encode()).hexdigest()


def _chunks(file_id: UUID) -> tuple[str, str, str]:
    hash_value = hash_file_id(file_id)
    return hash_value[0:2], hash_value[2:4], hash_value[4:6]


def get_folder_path(kind: str, file_id: UUID) -> Path:
    return get_vault_location().joinpath(kind, *_chunks(file_id))


def extension_for(mime_type: str) -> str:
    mime_type = mime_type.lower()
    if mime_type in KNOWN_EXTENSIONS:
        return KNOWN_EXTENSIONS[mime_type]
    return mimetypes.guess_extension(mime_type) or ".bin"


def validate_media(kind: str, content: bytes, mime_type: str | None) -> MediaKind:
    """
    Check an upload against the limits of its media kind.

    Raises:
        MediaRejected: if the content type does not match the kind's prefix,
            the file is empty, or it exceeds the size limit
    """
    media_kind = MEDIA_KINDS[kind]
    mime_type = (mime_type or "").lower()

    if not mime_type.startswith(media_kind.mime_prefix):
        raise MediaRejected(
            f"Content type '{mime_type or 'unknown'}' is not allowed for {kind} uploads"
        )

    if not content:
        raise MediaRejected("File is empty")

    if len(content) > media_kind.max_bytes:
        max_mb = media_kind.max_bytes / (1024 * 1024)
        actual_mb = len(content) / (1024 * 1024)
        raise MediaRejected(f"File size ({actual_mb:.2f} MB) exceeds maximum of {max_mb:g} MB")

    return media_kind


def save_media(kind: str, content: bytes, mime_type: str | None) -> str:
    """
    Validate and store an upload.

    Returns:
        The public URL of the stored file
    """
    validate_media(kind, content, mime_type)

    file_id = uuid.uuid4()
    extension = extension_for(mime_type or "")
    folder_path = get_folder_path(kind, file_id)
    folder_path.mkdir(parents=True, exist_ok=True)
    file_path = folder_path / f"{file_id}{extension}"

    with open(file_path, "wb") as f:
        f.write(content)

    logger.info(f"Saved {kind} {file_id} ({len(content)} bytes) to {file_path}")
    return get_public_url(kind, file_id, extension)


def get_public_url(kind: str, file_id: UUID, extension: str) -> str:
    """
    Get the public URL path for a stored file.

    We return an /api/vault/... path because the reverse proxy strips /api and
    the FastAPI app mounts the vault at /vault.
    """
    c1, c2, c3 = _chunks(file_id)
    return f"{PUBLIC_PREFIX}/{kind}/{c1}/{c2}/{c3}/{file_id}{extension}"


def path_for_public_url(url: str | None) -> Path | None:
    """Map a public vault URL back to its file, or None if it is not one of ours."""
    if not url:
        return None

    path = urlparse(url).path if "://" in url else url
    if not path.startswith(PUBLIC_PREFIX + "/"):
        return None

    # Path parts: {kind}/{c1}/{c2}/{c3}/{filename}
    parts = path[len(PUBLIC_PREFIX) + 1:].split("/")
    if len(parts) != 5 or parts[0] not in MEDIA_KINDS:
        return None

    kind, c1, c2, c3, filename = parts
    stem, _, _ = filename.partition(".")
    try:
        file_id = UUID(stem)
    except ValueError:
        return None

    if (c1, c2, c3) != _chunks(file_id):
        return None
    return get_vault_location() / kind / c1 / c2 / c3 / filename


def try_delete_by_public_url(url: str | None) -> bool:
    """
    Best-effort delete of a stored file referenced by its public URL.

    Returns True if we deleted a file, False otherwise.
    """
    try:
        vault_file = path_for_public_url(url)
        if vault_file is not None and vault_file.exists():
            vault_file.unlink()
            return True
        return False
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to delete vault file for url={url}: {e}")
        return False
