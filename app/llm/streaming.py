# FILE: app/llm/streaming.py
"""
Tutor Streaming Session Driver

Consumes the provider's Responses API event stream (or a synchronous
result) and produces the client-facing frame sequence.

v1.0: Explicit state machine. handle_event() is synchronous and returns the
frame payloads for one provider event, so tests can feed synthetic event
sequences without a network. run() is the async wrapper that pulls events,
serialises frames and finishes the turn.

CLIENT FRAME SCHEMA:
Every frame is one SSE record: "data: <json>\\n\\n"

{"type": "message_delta", "content": "<chunk>", "role": "assistant"}
    - One per provider text delta, in arrival order

{"type": "final_response", "data": {"response", "newChatHistory", "promptSuggestions"}}
    - Once, after the provider signals completion

{"type": "error", "error": "..."}
    - Provider failure; output already sent is not retracted

data: [DONE]
    - Terminal marker. Clients treat the turn as finished only on this
      record, never on transport close.

STATE MACHINE:
    START --text.delta--> STREAMING --text.done--> AWAIT_NEXT
    AWAIT_NEXT --text.delta--> STREAMING
    any --response.done--> DONE
Reasoning deltas are received but inert (not forwarded, not accumulated).
"""

import json
import logging
from enum import Enum
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Tuple

from app.errors import ProviderError
from app.llm.schemas import Conversation, Message, MessageKind, Role, TutorResponse
from app.llm.transcript import compact_conversation

logger = logging.getLogger(__name__)


DONE_FRAME = "data: [DONE]\n\n"


def format_frame(payload: Dict[str, Any]) -> str:
    return "data: " + json.dumps(payload) + "\n\n"


def error_frames(exc: BaseException) -> List[str]:
    """Error record followed by the terminal marker."""
    return [
        format_frame({"type": "error", "error": str(exc) or "Internal server error"}),
        DONE_FRAME,
    ]


# =============================================================================
# PROVIDER EVENTS
# =============================================================================

class StreamEventType(str, Enum):
    TEXT_DELTA = "text.delta"
    TEXT_DONE = "text.done"
    REASONING_DELTA = "reasoning.delta"
    REASONING_DONE = "reasoning.done"
    RESPONSE_DONE = "response.done"
    ERROR = "error"
    IGNORED = "ignored"


EVENT_TYPE_MAP = {
    "response.output_text.delta": StreamEventType.TEXT_DELTA,
    "response.output_text.done": StreamEventType.TEXT_DONE,
    "response.reasoning.delta": StreamEventType.REASONING_DELTA,
    "response.reasoning_text.delta": StreamEventType.REASONING_DELTA,
    "response.reasoning_summary_text.delta": StreamEventType.REASONING_DELTA,
    "response.reasoning.done": StreamEventType.REASONING_DONE,
    "response.reasoning_text.done": StreamEventType.REASONING_DONE,
    "response.reasoning_summary_text.done": StreamEventType.REASONING_DONE,
    "response.done": StreamEventType.RESPONSE_DONE,
    "response.completed": StreamEventType.RESPONSE_DONE,
    "response.failed": StreamEventType.ERROR,
    "error": StreamEventType.ERROR,
}


def _eget(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def normalize_event(event: Any) -> Tuple[StreamEventType, str]:
    """Map an SDK event object or dict to (event type, delta text)."""
    event_type = EVENT_TYPE_MAP.get(_eget(event, "type"), StreamEventType.IGNORED)
    delta = _eget(event, "delta")
    return event_type, delta if isinstance(delta, str) else ""


def _event_error_message(event: Any) -> str:
    message = _eget(event, "message")
    if not message:
        error = _eget(event, "error") or _eget(_eget(event, "response"), "error")
        message = _eget(error, "message") if error is not None else None
    return message or "Provider reported a failed response"


# =============================================================================
# SYNCHRONOUS OUTPUT
# =============================================================================

def output_item_to_message(item: Any) -> Optional[Message]:
    """
    Normalise one Responses API output item.

    Message and reasoning items keep their provider id so a reasoning item can
    be forwarded next turn together with the message that follows it. Message
    items collapse to their output text. Other item types (tool calls and the
    like) are not part of a tutor transcript.
    """
    item_type = _eget(item, "type")

    if item_type == "message":
        parts = []
        for block in _eget(item, "content") or []:
            if _eget(block, "type") in ("output_text", "text"):
                parts.append(_eget(block, "text") or "")
        role = _eget(item, "role") or Role.ASSISTANT.value
        return Message(role=Role(role), content="".join(parts), id=_eget(item, "id"))

    if item_type == "reasoning":
        summary = [_eget(s, "text") or "" for s in _eget(item, "summary") or []]
        return Message(
            role=Role.ASSISTANT,
            kind=MessageKind.REASONING,
            content="\n".join(summary),
            displayable=False,
            id=_eget(item, "id"),
        )

    logger.debug(f"[stream] Skipping output item of type {item_type!r}")
    return None


# =============================================================================
# STREAM SESSION DRIVER
# =============================================================================

class StreamState(str, Enum):
    START = "start"
    STREAMING = "streaming"
    AWAIT_NEXT = "await_next"
    DONE = "done"


class StreamSessionDriver:
    """
    Drives one turn's provider output into client frames.

    Holds a request-scoped copy of the conversation; the caller's list is
    never modified. After finishing, `result` holds the TutorResponse.
    """

    def __init__(self, conversation: Conversation):
        self.conversation: List[Message] = list(conversation)
        self.state = StreamState.START
        self.output: List[Message] = []
        self.frames_sent = 0
        self.result: Optional[TutorResponse] = None
        self._text_buffer = ""
        self._reasoning_buffer = ""

    # ------------------------------------------------------------------ events

    def handle_event(self, event: Any) -> List[Dict[str, Any]]:
        """Advance the state machine by one provider event."""
        if self.state == StreamState.DONE:
            return []

        event_type, delta = normalize_event(event)

        if event_type == StreamEventType.TEXT_DELTA:
            return self._on_text_delta(delta)
        if event_type == StreamEventType.TEXT_DONE:
            return self._on_text_done()
        if event_type == StreamEventType.REASONING_DELTA:
            return self._on_reasoning_delta(delta)
        if event_type == StreamEventType.REASONING_DONE:
            return self._on_reasoning_done()
        if event_type == StreamEventType.RESPONSE_DONE:
            self.state = StreamState.DONE
            return []
        if event_type == StreamEventType.ERROR:
            raise ProviderError(_event_error_message(event), partial=self.frames_sent > 0)
        return []

    def _on_text_delta(self, delta: str) -> List[Dict[str, Any]]:
        self._text_buffer += delta
        self.state = StreamState.STREAMING
        return [{"type": "message_delta", "content": delta, "role": Role.ASSISTANT.value}]

    def _on_text_done(self) -> List[Dict[str, Any]]:
        if self.state != StreamState.STREAMING:
            return []
        self._flush_text()
        self.state = StreamState.AWAIT_NEXT
        return []

    def _on_reasoning_delta(self, delta: str) -> List[Dict[str, Any]]:
        # Reasoning is not surfaced to the notebook; _reasoning_buffer stays empty.
        return []

    def _on_reasoning_done(self) -> List[Dict[str, Any]]:
        if self._reasoning_buffer:
            self.output.append(
                Message(
                    role=Role.ASSISTANT,
                    kind=MessageKind.REASONING,
                    content=self._reasoning_buffer,
                    displayable=False,
                )
            )
            self._reasoning_buffer = ""
        return []

    def _flush_text(self) -> None:
        if self._text_buffer:
            self.output.append(Message(role=Role.ASSISTANT, content=self._text_buffer))
            self._text_buffer = ""

    # ------------------------------------------------------------------ finish

    def finish(self) -> TutorResponse:
        """Append accumulated output to the conversation and compact it."""
        # A stream that ends without text.done must not lose its text
        self._flush_text()
        self.state = StreamState.DONE
        self.conversation.extend(self.output)
        self.result = TutorResponse(
            response=list(self.output),
            new_chat_history=compact_conversation(self.conversation),
            prompt_suggestions=[],
        )
        return self.result

    def complete(self, output: Iterable[Any]) -> TutorResponse:
        """Non-streaming path: take a synchronous result's output list."""
        for item in output or []:
            message = item if isinstance(item, Message) else output_item_to_message(item)
            if message is not None:
                self.output.append(message)
        return self.finish()

    async def run(self, events: AsyncIterator[Any]) -> AsyncIterator[str]:
        """
        Stream SSE records for the provider's event sequence.

        Yields message_delta records in provider order, then final_response
        and the terminal marker. On failure yields an error record and the
        terminal marker, then raises ProviderError.
        """
        try:
            async for event in events:
                for payload in self.handle_event(event):
                    self.frames_sent += 1
                    yield format_frame(payload)
                if self.state == StreamState.DONE:
                    break
        except Exception as e:
            logger.exception("[stream] Provider stream failed after %d frame(s): %s", self.frames_sent, e)
            for frame in error_frames(e):
                yield frame
            if isinstance(e, ProviderError):
                e.partial = self.frames_sent > 0
                raise
            raise ProviderError(str(e), partial=self.frames_sent > 0, cause=e) from e

        result = self.finish()
        logger.info(f"[stream] Turn finished: {len(result.response)} output message(s), {self.frames_sent} delta frame(s)")
        yield format_frame({"type": "final_response", "data": result.to_wire()})
        yield DONE_FRAME
