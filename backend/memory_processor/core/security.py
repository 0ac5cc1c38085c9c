from __future__ import annotations

import re

SECRET_PATTERN = re.compile(r"(sk-[A-Za-z0-9_-]{6,})")
BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]{6,}")


def redact_secrets(text: str) -> str:
    """Redact API keys or bearer tokens from a string."""

    redacted = SECRET_PATTERN.sub("sk-***", text)
    return BEARER_PATTERN.sub(r"\1***", redacted)


def sanitize_text(text: str, max_length: int) -> str:
    """Trim and clamp user-provided text to a safe length."""

    cleaned = text.strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length]
    return cleaned


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """Clamp diagnostic text without stripping it."""

    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix
