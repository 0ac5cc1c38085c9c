from __future__ import annotations

import logging

from memory_processor.core.logging import RedactionFilter
from memory_processor.core.security import redact_secrets, truncate_text


def test_redact_secrets_masks_keys_and_bearer_tokens() -> None:
    text = "key=sk-abcdef1234567890 header=Bearer eyJhbGciOiJIUzI1NiJ9.payload"

    redacted = redact_secrets(text)

    assert "sk-abcdef1234567890" not in redacted
    assert "eyJhbGciOiJIUzI1NiJ9" not in redacted
    assert "sk-***" in redacted
    assert "Bearer ***" in redacted


def test_redaction_filter_keeps_numeric_args() -> None:
    record = logging.LogRecord(
        "memory_processor",
        logging.INFO,
        __file__,
        1,
        "key %s length %d",
        ("sk-abcdef1234567890", 12),
        None,
    )

    assert RedactionFilter().filter(record) is True
    assert record.getMessage() == "key sk-*** length 12"


def test_truncate_text() -> None:
    assert truncate_text("short", 10) == "short"
    assert truncate_text("abcdefghij", 4) == "abcd..."
