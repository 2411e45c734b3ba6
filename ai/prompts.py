from typing import Any, Iterable, Optional

BASE_PROMPT = """You are the user's private journaling assistant. You help users reflect on their thoughts and feelings based on their journal entries."""

NO_CONTEXT_INSTRUCTIONS = """If you don't have enough context to answer a question, say so and suggest they write more journal entries. Be supportive, empathetic, and encouraging."""

CONTEXT_INSTRUCTIONS = """Instructions:
- Base your response only on the provided journal context
- Be supportive, empathetic, and encouraging
- If the context doesn't provide enough information, say so
- Don't make up information not present in their entries
- Help them reflect on patterns, emotions, and growth
- Keep responses conversational and personal"""

MAX_EXCERPT_LENGTH = 200


def _truncate_text(value: Any, max_length: int = MAX_EXCERPT_LENGTH) -> str:
    if not isinstance(value, str):
        return ""
    value = value.strip()
    if len(value) <= max_length:
        return value
    return f"{value[: max_length - 3]}..."


def format_context_entry(entry: Any) -> str:
    created_at = getattr(entry, "created_at", None)
    date = created_at.date().isoformat() if created_at else "an unknown date"
    tags = getattr(entry, "tags", None) or []
    mood = getattr(entry, "mood", None)

    header = f"Entry from {date}"
    if tags:
        header += f" [{', '.join(tags)}]"
    if mood:
        header += f" (Mood: {mood})"

    body = _truncate_text(getattr(entry, "summary", None) or getattr(entry, "content", ""))
    return f"{header}:\n{body}"


def build_system_prompt(context: Optional[Iterable[Any]] = None) -> str:
    entries = list(context or [])
    if not entries:
        return f"{BASE_PROMPT} {NO_CONTEXT_INSTRUCTIONS}"

    context_text = "\n\n".join(format_context_entry(e) for e in entries)
    return (
        f"{BASE_PROMPT} Answer based on their past reflections only. "
        f"Here is relevant context from their journal entries:\n\n{context_text}\n\n{CONTEXT_INSTRUCTIONS}"
    )


def build_chat_messages(prompt: str, context: Optional[Iterable[Any]] = None) -> list[dict]:
    return [
        {"role": "system", "content": build_system_prompt(context)},
        {"role": "user", "content": prompt.strip()},
    ]
