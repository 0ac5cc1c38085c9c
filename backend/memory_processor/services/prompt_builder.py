from __future__ import annotations

from typing import Iterable, List, Optional, Sequence

from memory_processor.memory.types import MemoryRecord, SpeakerRole, TranscriptTurn

MEMORY_MACRO = "{{processed_memory}}"


class PromptBuilder:
    """Assemble chat prompts with derived memory injected."""

    def __init__(self, max_history: int = 20, max_memory_chars: int = 6000) -> None:
        self._max_history = max(1, max_history)
        self._max_memory_chars = max(200, max_memory_chars)

    def build_messages(
        self,
        system_prompt: str,
        turns: Sequence[TranscriptTurn],
        memory_text: Optional[str] = None,
        records: Iterable[MemoryRecord] = (),
        max_history: Optional[int] = None,
    ) -> List[dict]:
        """Create the message list for the host's reply generation."""

        memory = self._clamp_memory(memory_text)
        if MEMORY_MACRO in system_prompt:
            system_content = system_prompt.replace(MEMORY_MACRO, memory or "(none)")
        elif memory:
            system_content = f"{system_prompt}\n\nCharacter memory:\n{memory}"
        else:
            system_content = system_prompt

        record_section = self._build_record_section(records, exclude=memory)
        if record_section:
            system_content = f"{system_content}\n\n{record_section}"

        limit = max(1, max_history or self._max_history)
        messages: list[dict] = [{"role": "system", "content": system_content.strip()}]
        for turn in [item for item in turns if not item.is_blank][-limit:]:
            role = "user" if turn.role is SpeakerRole.INITIATOR else "assistant"
            messages.append({"role": role, "content": turn.text.strip()})
        return messages

    def _clamp_memory(self, memory_text: Optional[str]) -> str:
        text = (memory_text or "").strip()
        if len(text) <= self._max_memory_chars:
            return text
        # Keep the newest fragments; they sit at the end.
        lines = text.splitlines()
        kept: list[str] = []
        total = 0
        for line in reversed(lines):
            if total + len(line) + 1 > self._max_memory_chars:
                break
            kept.append(line)
            total += len(line) + 1
        kept.reverse()
        return "\n".join(kept)

    @staticmethod
    def _build_record_section(records: Iterable[MemoryRecord], exclude: str) -> str:
        lines: list[str] = []
        for record in records:
            if not record.enabled or not record.always_on:
                continue
            content = record.content.strip()
            if not content or content == exclude:
                continue
            lines.append(content)
        return "\n\n".join(lines)
