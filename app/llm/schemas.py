# FILE: app/llm/schemas.py
"""
Conversation schemas: content blocks, messages and the tutor response.

v1.0: Display suppression is a first-class attribute.

The client wire format (what the notebook extension sends back as
`chatHistory`) carries an inverted `noShow` flag on messages and content
blocks. Internally every block and message has `displayable` instead, set
when the object is built. Two serialisations exist:

- to_wire():     client representation, keeps `noShow`
- to_provider(): model representation, never carries transport-only fields

Neither mutates the object, so the same Message can be sent to the model
and kept in history with its flags intact.
"""

import re
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from app.errors import InputError


# =============================================================================
# ENUMS
# =============================================================================

class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageKind(str, Enum):
    MESSAGE = "message"
    REASONING = "reasoning"


class ImageMimeType(str, Enum):
    PNG = "image/png"
    JPEG = "image/jpeg"
    GIF = "image/gif"
    BMP = "image/bmp"
    WEBP = "image/webp"


# Block types a client may send back; output_text is what assistant
# turns look like when echoed verbatim from a provider response.
_TEXT_BLOCK_TYPES = {"input_text", "output_text", "text"}

_DATA_URL_RE = re.compile(r"^data:(?P<mime>image/[a-z]+);base64,(?P<data>.*)$", re.DOTALL)


# =============================================================================
# CONTENT BLOCKS
# =============================================================================

class InputText(BaseModel):
    type: Literal["input_text"] = "input_text"
    text: str
    displayable: bool = True

    def to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "text": self.text}
        if not self.displayable:
            data["noShow"] = True
        return data

    def to_provider(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


class InputImage(BaseModel):
    type: Literal["input_image"] = "input_image"
    mime_type: ImageMimeType
    base64_data: str
    displayable: bool = True

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type.value};base64,{self.base64_data}"

    def to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "image_url": self.data_url}
        if not self.displayable:
            data["noShow"] = True
        return data

    def to_provider(self) -> Dict[str, Any]:
        return {"type": self.type, "image_url": self.data_url}


ContentBlock = Annotated[Union[InputText, InputImage], Field(discriminator="type")]


def content_block_from_wire(item: Any) -> Union[InputText, InputImage]:
    """Parse one client-supplied content block."""
    if not isinstance(item, dict):
        raise InputError(f"Content block must be an object, got {type(item).__name__}")

    block_type = item.get("type")
    displayable = not bool(item.get("noShow"))

    if block_type in _TEXT_BLOCK_TYPES:
        text = item.get("text")
        if not isinstance(text, str):
            raise InputError(f"Content block of type '{block_type}' is missing its text")
        return InputText(text=text, displayable=displayable)

    if block_type == "input_image":
        image_url = item.get("image_url")
        match = _DATA_URL_RE.match(image_url) if isinstance(image_url, str) else None
        if not match:
            raise InputError("Image content block must carry a base64 data URL")
        try:
            mime_type = ImageMimeType(match.group("mime"))
        except ValueError:
            raise InputError(f"Unsupported image type '{match.group('mime')}'")
        return InputImage(mime_type=mime_type, base64_data=match.group("data"), displayable=displayable)

    raise InputError(f"Unsupported content block type '{block_type}'")


# =============================================================================
# MESSAGES
# =============================================================================

class Message(BaseModel):
    role: Role = Role.ASSISTANT
    content: Union[str, List[ContentBlock]] = ""
    kind: MessageKind = MessageKind.MESSAGE
    displayable: bool = True
    # Provider item id; reasoning items can only be re-sent with it
    id: Optional[str] = None

    @property
    def is_reasoning(self) -> bool:
        return self.kind == MessageKind.REASONING

    def text_blocks(self) -> List[InputText]:
        if isinstance(self.content, str):
            return []
        return [b for b in self.content if isinstance(b, InputText)]

    def first_text(self) -> Optional[str]:
        """String content, or the text of the first text block."""
        if isinstance(self.content, str):
            return self.content
        blocks = self.text_blocks()
        return blocks[0].text if blocks else None

    def has_image(self) -> bool:
        if isinstance(self.content, str):
            return False
        return any(isinstance(b, InputImage) for b in self.content)

    def to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value, "role": self.role.value}
        if isinstance(self.content, str):
            data["content"] = self.content
        else:
            data["content"] = [b.to_wire() for b in self.content]
        if self.id:
            data["id"] = self.id
        if not self.displayable:
            data["noShow"] = True
        return data

    def to_provider(self) -> Optional[Dict[str, Any]]:
        """
        Provider-facing payload, or None if the message cannot be re-sent.

        Reasoning messages are forwarded as opaque reasoning items keyed by
        their provider id.
        """
        if self.is_reasoning:
            if not self.id:
                return None
            text = self.first_text() or ""
            return {
                "type": "reasoning",
                "id": self.id,
                "summary": [{"type": "summary_text", "text": text}] if text else [],
            }

        if isinstance(self.content, str):
            content: Union[str, List[Dict[str, Any]]] = self.content
        else:
            content = [b.to_provider() for b in self.content]
            if self.role == Role.ASSISTANT:
                # Assistant turns are replayed as model output
                content = [
                    {"type": "output_text", "text": b["text"]} if b["type"] == "input_text" else b
                    for b in content
                ]
        if self.id and self.role == Role.ASSISTANT:
            # Output message item; must follow its reasoning item by id
            return {"type": "message", "id": self.id, "role": self.role.value, "content": content}
        return {"role": self.role.value, "content": content}

    @classmethod
    def from_wire(cls, item: Any) -> "Message":
        """Parse one client-supplied chat history entry."""
        if not isinstance(item, dict):
            raise InputError(f"Chat history entries must be objects, got {type(item).__name__}")

        try:
            kind = MessageKind(item.get("type") or MessageKind.MESSAGE.value)
        except ValueError:
            raise InputError(f"Unsupported chat history entry type '{item.get('type')}'")

        raw_role = item.get("role")
        if raw_role is None and kind == MessageKind.REASONING:
            raw_role = Role.ASSISTANT.value
        try:
            role = Role(raw_role)
        except ValueError:
            raise InputError(f"Unsupported message role '{raw_role}'")

        raw_content = item.get("content")
        if raw_content is None:
            content: Union[str, List[Union[InputText, InputImage]]] = ""
        elif isinstance(raw_content, str):
            content = raw_content
        elif isinstance(raw_content, list):
            content = [content_block_from_wire(block) for block in raw_content]
        else:
            raise InputError("Message content must be a string or a list of content blocks")

        item_id = item.get("id")
        return cls(
            role=role,
            content=content,
            kind=kind,
            displayable=not bool(item.get("noShow")),
            id=item_id if isinstance(item_id, str) else None,
        )


Conversation = List[Message]


def parse_conversation(items: Any) -> Conversation:
    if not isinstance(items, list):
        raise InputError("Invalid chatHistory format. Expected an array.")
    return [Message.from_wire(item) for item in items]


def conversation_to_wire(conversation: Conversation) -> List[Dict[str, Any]]:
    return [m.to_wire() for m in conversation]


# =============================================================================
# TUTOR RESPONSE
# =============================================================================

class TutorResponse(BaseModel):
    """Result of one turn, streamed or not."""
    response: List[Message] = Field(default_factory=list)
    new_chat_history: List[Message] = Field(default_factory=list)
    prompt_suggestions: List[str] = Field(default_factory=list)

    def first_response_text(self) -> Optional[str]:
        for message in self.response:
            if not message.is_reasoning:
                return message.first_text()
        return None

    def to_wire(self) -> Dict[str, Any]:
        return {
            "response": conversation_to_wire(self.response),
            "newChatHistory": conversation_to_wire(self.new_chat_history),
            "promptSuggestions": list(self.prompt_suggestions),
        }
