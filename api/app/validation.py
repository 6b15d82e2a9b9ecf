"""Input validation helpers shared by routers and services."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from .errors import ValidationError

YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com", "youtu.be", "music.youtube.com"}
MAX_YOUTUBE_URLS = 10
MAX_IMAGES = 20

_WHITESPACE_RE = re.compile(r"\s+")


def require_text(value: str | None, field: str) -> str:
    """
    Return ``value`` stripped of surrounding whitespace.

    Raises:
        ValidationError: if the value is missing or blank
    """
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty")
    return value.strip()


def optional_text(value: str | None) -> str | None:
    """Strip a free-text field, mapping blank input to ``None``."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def is_youtube_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and parsed.netloc.lower() in YOUTUBE_HOSTS


def clean_youtube_urls(urls: list[str] | None) -> list[str]:
    """
    Drop blank entries and duplicates while keeping order.

    Raises:
        ValidationError: for a non-YouTube URL or too many URLs
    """
    cleaned: list[str] = []
    for url in urls or []:
        url = url.strip()
        if not url or url in cleaned:
            continue
        if not is_youtube_url(url):
            raise ValidationError(f"Not a YouTube URL: {url}")
        cleaned.append(url)

    if len(cleaned) > MAX_YOUTUBE_URLS:
        raise ValidationError(f"At most {MAX_YOUTUBE_URLS} YouTube URLs are allowed")
    return cleaned


def clean_image_urls(urls: list[str] | None) -> list[str]:
    """
    Keep only non-blank image URLs, in order, without duplicates.

    Raises:
        ValidationError: for too many images
    """
    cleaned: list[str] = []
    for url in urls or []:
        url = _WHITESPACE_RE.sub("", url)
        if url and url not in cleaned:
            cleaned.append(url)

    if len(cleaned) > MAX_IMAGES:
        raise ValidationError(f"At most {MAX_IMAGES} images are allowed")
    return cleaned
