from __future__ import annotations

from collections.abc import Sequence

from memory_processor.memory.types import SpeakerRole, TranscriptTurn

ROLE_LABELS = {
    SpeakerRole.INITIATOR: "User",
    SpeakerRole.RESPONDER: "Character",
}


def format_transcript(turns: Sequence[TranscriptTurn], max_turns: int) -> str:
    """Render the last ``max_turns`` turns as an annotated text blob.

    Blank turns inside the window are skipped. Retained turns keep their
    original order and are tagged ``#1..#k`` after filtering, so a higher tag
    always means a more recent turn. Output is deterministic for a given input.
    """

    if max_turns <= 0:
        return ""
    window = list(turns)[-max_turns:]
    lines: list[str] = []
    ordinal = 0
    for turn in window:
        if turn.is_blank:
            continue
        ordinal += 1
        lines.append(_render_turn(ordinal, turn))
    return "\n".join(lines)


def _render_turn(ordinal: int, turn: TranscriptTurn) -> str:
    label = ROLE_LABELS[turn.role]
    name = turn.name.strip()
    speaker = f"{label} ({name})" if name else label
    text = " ".join(turn.text.split())
    return f"#{ordinal} [{speaker}] {text}"
