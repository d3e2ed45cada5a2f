"""
Prompt construction for document chat.

The prompt has a fixed layout: instructions, previous conversation,
retrieved context, then the user's input. No token budgeting is done here;
callers bound the number of history messages and passages.
"""

from typing import Iterable, Sequence

from ..models import RetrievedPassage
from ..models_db import Message

SECTION_RULE = "----------------"

INSTRUCTIONS = (
    "Use the following pieces of context (or previous conversation if needed) "
    "to answer the user's question in markdown format.\n"
    "If you don't know the answer, just say that you don't know, "
    "don't try to make up an answer."
)


def render_history(messages: Iterable[Message]) -> str:
    """One ``User:`` / ``Assistant:`` line per message, in the given order."""
    lines = []
    for message in messages:
        speaker = "User" if message.is_user_message else "Assistant"
        lines.append(f"{speaker}: {message.text}")
    return "\n".join(lines)


def render_passages(passages: Sequence[RetrievedPassage]) -> str:
    return "\n\n".join(passage.text for passage in passages)


def assemble_prompt(
    prior_messages: Sequence[Message],
    passages: Sequence[RetrievedPassage],
    question: str,
) -> str:
    """
    Build the completion prompt.

    Args:
        prior_messages: Conversation window, oldest first
        passages: Retrieved passages, most similar first
        question: The user's current message, used verbatim

    Returns:
        Prompt text; identical inputs always give identical output
    """
    return (
        f"{INSTRUCTIONS}\n"
        f"\n{SECTION_RULE}\n\n"
        f"PREVIOUS CONVERSATION:\n{render_history(prior_messages)}\n"
        f"\n{SECTION_RULE}\n\n"
        f"CONTEXT:\n{render_passages(passages)}\n"
        f"\nUSER INPUT: {question}\n"
    )
