# FILE: app/llm/message_assembler.py
"""
Builds the provider-ready conversation for one turn.

Order of the new user message content:
1. One block per uploaded file, in upload order (non-displayable)
2. The typed message, if any (displayable, the only part echoed back)

Duplicate guard: a client retry or double-submit re-sends the same text
that is already the last user turn in history. When the trimmed texts
match, no new message is appended and the attachments of the repeated
submission are dropped with it.
"""

import logging
from typing import Iterable, List, Optional, Union

from app.llm.file_classifier import RawFile, classify_files
from app.llm.schemas import Conversation, InputImage, InputText, Message, Role

logger = logging.getLogger(__name__)


def last_user_text(conversation: Conversation) -> Optional[str]:
    """
    First text of the last message, if that message is a user turn.

    Returns None when the conversation is empty or ends with a non-user
    message.
    """
    if not conversation:
        return None
    last = conversation[-1]
    if last.role != Role.USER or last.is_reasoning:
        return None
    return last.first_text() or ""


def is_duplicate_submission(conversation: Conversation, new_text: Optional[str]) -> bool:
    previous = last_user_text(conversation)
    if not previous or not new_text:
        return False
    previous = previous.strip()
    current = new_text.strip()
    return bool(previous) and bool(current) and previous == current


def build_user_message(new_text: Optional[str], files: Iterable[Optional[RawFile]]) -> Message:
    content: List[Union[InputText, InputImage]] = classify_files(files)
    if new_text:
        content.append(InputText(text=new_text))
    return Message(role=Role.USER, content=content)


def assemble_messages(
    history: Conversation,
    new_text: Optional[str],
    files: Iterable[Optional[RawFile]] = (),
) -> List[Message]:
    """
    Merge prior transcript, new text and attachments into one conversation.

    The input history list is copied, never mutated.
    """
    messages = list(history or [])
    user_message = build_user_message(new_text, files)

    if is_duplicate_submission(messages, new_text):
        logger.info(
            "[assembler] Duplicate submission of last user turn, not appending "
            "(dropped %d attachment block(s))",
            max(0, len(user_message.content) - 1),
        )
        return messages

    messages.append(user_message)
    logger.debug(f"[assembler] Conversation has {len(messages)} messages")
    return messages
