"""Reply normalization for interchangeable text-generation endpoints.

Each extractor is a pure function that takes the decoded JSON payload and
returns the memory text when the payload has its shape, or ``None``. The
extractors are tried in ``EXTRACTORS`` order and the first non-empty match
wins, so the client does not depend on any single vendor's wire format.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

Extractor = Callable[[Any], Optional[str]]


def _non_empty(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _first_item(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _field(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value.get(key)
    return None


def extract_chat_choice(payload: Any) -> Optional[str]:
    """OpenAI chat completion: ``choices[0].message.content``."""

    choice = _first_item(_field(payload, "choices"))
    return _non_empty(_field(_field(choice, "message"), "content"))


def extract_completion_choice(payload: Any) -> Optional[str]:
    """Legacy completion: ``choices[0].text``."""

    choice = _first_item(_field(payload, "choices"))
    return _non_empty(_field(choice, "text"))


def extract_content_blocks(payload: Any) -> Optional[str]:
    """Content-block array, as in Anthropic messages: ``content[0].text``."""

    block = _first_item(_field(payload, "content"))
    return _non_empty(_field(block, "text"))


def extract_top_level_content(payload: Any) -> Optional[str]:
    """Bare ``content`` string."""

    return _non_empty(_field(payload, "content"))


def extract_generic_response(payload: Any) -> Optional[str]:
    """Generic ``response`` string, as returned by Ollama-style generate APIs."""

    return _non_empty(_field(payload, "response"))


EXTRACTORS: tuple[tuple[str, Extractor], ...] = (
    ("chat_choice", extract_chat_choice),
    ("completion_choice", extract_completion_choice),
    ("content_blocks", extract_content_blocks),
    ("top_level_content", extract_top_level_content),
    ("generic_response", extract_generic_response),
)


def match_reply(payload: Any) -> Optional[tuple[str, str]]:
    """Return ``(shape_name, text)`` for the first extractor that matches."""

    for name, extractor in EXTRACTORS:
        text = extractor(payload)
        if text is not None:
            return name, text
    return None


def describe_payload(payload: Any) -> str:
    """Short, content-free description of a payload for error messages."""

    if isinstance(payload, dict):
        keys = ", ".join(sorted(str(key) for key in payload)[:8])
        return f"object with keys [{keys}]"
    if isinstance(payload, list):
        return f"array of {len(payload)} item(s)"
    return type(payload).__name__
