from datetime import datetime, timezone

from ai.prompts import build_chat_messages, build_system_prompt, format_context_entry
from schemas.ai import ChatContextEntry


def test_system_prompt_without_context_asks_for_more_entries():
    prompt = build_system_prompt([])

    assert "private journaling assistant" in prompt
    assert "write more journal entries" in prompt


def test_context_entry_uses_summary_tags_and_mood():
    entry = ChatContextEntry(
        content="Long day at work.",
        summary="Felt drained after meetings",
        tags=["work", " energy "],
        mood="tired",
        created_at=datetime(2025, 3, 4, 21, 0, tzinfo=timezone.utc),
    )

    formatted = format_context_entry(entry)

    assert formatted.startswith("Entry from 2025-03-04 [work, energy] (Mood: tired):")
    assert "Felt drained after meetings" in formatted


def test_context_entry_truncates_long_content():
    entry = ChatContextEntry(content="x" * 500)

    formatted = format_context_entry(entry)

    assert formatted.startswith("Entry from an unknown date:")
    assert formatted.endswith("...")
    assert len(formatted.split("\n", 1)[1]) == 200


def test_build_chat_messages_with_context():
    entries = [ChatContextEntry(content="Walked by the river."), ChatContextEntry(content="Called mom.")]

    messages = build_chat_messages("  What calms me?  ", entries)

    assert [m["role"] for m in messages] == ["system", "user"]
    assert "Walked by the river." in messages[0]["content"]
    assert "Called mom." in messages[0]["content"]
    assert "Base your response only on the provided journal context" in messages[0]["content"]
    assert messages[1]["content"] == "What calms me?"
