from __future__ import annotations

import re

from memory_processor.memory.formatter import format_transcript
from memory_processor.memory.types import SpeakerRole, TranscriptTurn


def make_turns(texts: list[str]) -> list[TranscriptTurn]:
    turns = []
    for index, text in enumerate(texts):
        role = SpeakerRole.INITIATOR if index % 2 == 0 else SpeakerRole.RESPONDER
        name = "Mia" if role is SpeakerRole.INITIATOR else "Ren"
        turns.append(TranscriptTurn(role=role, name=name, text=text, position=index + 1))
    return turns


def test_formatter_keeps_last_window_in_order_with_fresh_ordinals() -> None:
    turns = make_turns([f"line {index}" for index in range(10)])

    blob = format_transcript(turns, max_turns=3)

    assert blob.splitlines() == [
        "#1 [Character (Ren)] line 7",
        "#2 [User (Mia)] line 8",
        "#3 [Character (Ren)] line 9",
    ]


def test_formatter_skips_blank_turns_inside_window() -> None:
    turns = make_turns(["old", "hello", "   ", "", "\n\t", "bye"])

    blob = format_transcript(turns, max_turns=5)
    lines = blob.splitlines()

    # Window is the last five turns; three are blank.
    assert len(lines) == 2
    assert lines[0].startswith("#1 ") and lines[0].endswith("hello")
    assert lines[1].startswith("#2 ") and lines[1].endswith("bye")
    assert "old" not in blob


def test_formatter_ordinals_strictly_increase_from_one() -> None:
    turns = make_turns(["a", "", "b", "c", " ", "d", "e"])

    blob = format_transcript(turns, max_turns=6)
    ordinals = [int(match) for match in re.findall(r"^#(\d+) ", blob, flags=re.MULTILINE)]

    assert ordinals == list(range(1, len(ordinals) + 1))
    assert len(ordinals) == 4


def test_formatter_is_deterministic_and_labels_both_speakers() -> None:
    turns = make_turns(["Hi there", "Hello,   you"])

    first = format_transcript(turns, max_turns=50)
    second = format_transcript(list(turns), max_turns=50)

    assert first == second
    assert "[User (Mia)]" in first
    assert "[Character (Ren)] Hello, you" in first


def test_formatter_handles_empty_input_and_zero_bound() -> None:
    assert format_transcript([], max_turns=10) == ""
    assert format_transcript(make_turns(["x"]), max_turns=0) == ""


def test_formatter_omits_missing_display_name() -> None:
    turns = [TranscriptTurn(role=SpeakerRole.RESPONDER, name="  ", text="ok", position=1)]

    assert format_transcript(turns, max_turns=1) == "#1 [Character] ok"
