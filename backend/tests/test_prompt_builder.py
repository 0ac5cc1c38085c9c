from __future__ import annotations

from memory_processor.memory.types import MemoryRecord, SpeakerRole, TranscriptTurn
from memory_processor.services.prompt_builder import PromptBuilder


def turns() -> list[TranscriptTurn]:
    return [
        TranscriptTurn(SpeakerRole.INITIATOR, "Mia", "Hello", 1),
        TranscriptTurn(SpeakerRole.RESPONDER, "Ren", "  ", 2),
        TranscriptTurn(SpeakerRole.RESPONDER, "Ren", "Hi Mia", 3),
    ]


def test_prompt_builder_substitutes_memory_macro() -> None:
    builder = PromptBuilder()
    messages = builder.build_messages(
        "Stay in character.\nMemory:\n{{processed_memory}}",
        turns(),
        memory_text="- I remember her smile",
    )

    assert messages[0] == {
        "role": "system",
        "content": "Stay in character.\nMemory:\n- I remember her smile",
    }
    assert messages[1:] == [
        {"role": "user", "content": "Hello"},
        {"role": "assistant", "content": "Hi Mia"},
    ]


def test_prompt_builder_appends_memory_without_macro_and_respects_history() -> None:
    messages = PromptBuilder().build_messages(
        "Stay in character.", turns(), memory_text="- fragment", max_history=1
    )

    assert messages[0]["content"] == "Stay in character.\n\nCharacter memory:\n- fragment"
    assert messages[1:] == [{"role": "assistant", "content": "Hi Mia"}]


def test_prompt_builder_adds_always_on_records_only() -> None:
    records = [
        MemoryRecord(uid="1", tag="processed_memory", content="- fragment"),
        MemoryRecord(uid="2", tag="world", content="The city floods every spring."),
        MemoryRecord(uid="3", tag="keyed", content="Secret lore", keys=["vault"]),
        MemoryRecord(uid="4", tag="off", content="Disabled lore", enabled=False),
    ]
    messages = PromptBuilder().build_messages(
        "{{processed_memory}}", turns(), memory_text="- fragment", records=records
    )

    system = messages[0]["content"]
    assert system.count("- fragment") == 1
    assert "The city floods every spring." in system
    assert "Secret lore" not in system
    assert "Disabled lore" not in system


def test_prompt_builder_clamps_long_memory_to_newest_fragments() -> None:
    memory = "\n".join(f"- fragment {index:03d} " + "x" * 50 for index in range(200))
    messages = PromptBuilder(max_memory_chars=500).build_messages("{{processed_memory}}", [], memory)

    system = messages[0]["content"]
    assert len(system) <= 500
    assert system.endswith("- fragment 199 " + "x" * 50)
    assert "fragment 000" not in system
