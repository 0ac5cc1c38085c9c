from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from memory_processor.utils.time_utils import utc_now


class SpeakerRole(str, Enum):
    """The two logical speakers of a transcript."""

    INITIATOR = "user"
    RESPONDER = "character"


@dataclass(frozen=True)
class TranscriptTurn:
    """One host-owned conversation turn."""

    role: SpeakerRole
    name: str
    text: str
    position: int

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


@dataclass(frozen=True)
class MemorySnapshot:
    """Derived memory plus the transcript length it was computed from.

    Snapshots are replaced wholesale after a successful derivation and never
    edited in place.
    """

    fragments: tuple[str, ...]
    source_length: int
    created_at: datetime = field(default_factory=utc_now)

    @property
    def text(self) -> str:
        return "\n".join(self.fragments)

    @classmethod
    def from_text(cls, text: str, source_length: int) -> "MemorySnapshot":
        """Split a model reply into memory-fragment lines."""

        fragments = tuple(line.strip() for line in text.splitlines() if line.strip())
        return cls(fragments=fragments, source_length=source_length)


@dataclass
class MemoryRecord:
    """Tagged entry in the host's record collection."""

    uid: str
    tag: str
    content: str
    keys: list[str] = field(default_factory=list)
    enabled: bool = True

    @property
    def always_on(self) -> bool:
        return not self.keys
