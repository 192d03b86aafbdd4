# FILE: app/llm/transcript.py
"""
Transcript compaction.

After a turn completes the accumulated conversation is rewritten before it
goes back to the client as `newChatHistory`, so that resending it next turn
stays small and never re-transmits image bytes:

- reasoning messages are marked non-displayable
- multi-part content collapses to the first text block's text
  (images and other blocks are dropped, no placeholder)
- multi-part content with no text block is kept as-is
- plain string content is untouched

Compaction is pure and idempotent.
"""

from typing import List

from app.llm.schemas import Conversation, Message


def compact_message(message: Message) -> Message:
    if message.is_reasoning:
        return message.model_copy(update={"displayable": False})

    if isinstance(message.content, str):
        return message

    text_blocks = message.text_blocks()
    if not text_blocks:
        return message
    return message.model_copy(update={"content": text_blocks[0].text})


def compact_conversation(conversation: Conversation) -> List[Message]:
    return [compact_message(m) for m in conversation]
