"""Centralized environment-driven settings.

Keep this module lightweight: stdlib only, no app imports, to avoid circular deps.
"""

from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# Upload limits (bytes).
# Configured via .env: BOLD_IMAGE_SIZE_LIMIT=10485760  (10 MiB)
BOLD_IMAGE_SIZE_LIMIT_BYTES: int = _int_env("BOLD_IMAGE_SIZE_LIMIT", 10 * 1024 * 1024)
BOLD_VIDEO_SIZE_LIMIT_BYTES: int = _int_env("BOLD_VIDEO_SIZE_LIMIT", 100 * 1024 * 1024)
BOLD_AVATAR_SIZE_LIMIT_BYTES: int = _int_env("BOLD_AVATAR_SIZE_LIMIT", 5 * 1024 * 1024)

# Public base URL used in notification and verification emails.
BASE_URL: str = os.getenv("BASE_URL", "http://localhost:3000")

# Run Celery tasks inline (tests, single-process deployments).
CELERY_TASK_ALWAYS_EAGER: bool = _bool_env("CELERY_TASK_ALWAYS_EAGER", False)

# Chat polling page size.
MESSAGES_PAGE_LIMIT: int = _int_env("BOLD_MESSAGES_PAGE_LIMIT", 100)
