# FILE: app/llm/__init__.py
"""
LLM module exports.

v1.0.0: Tutor pipeline (attachments, assembly, selection, streaming, compaction).
"""

# ============== SCHEMA EXPORTS ==============

from app.llm.schemas import (
    Role,
    MessageKind,
    ImageMimeType,
    InputText,
    InputImage,
    Message,
    Conversation,
    TutorResponse,
    parse_conversation,
    conversation_to_wire,
)

# ============== ATTACHMENT EXPORTS ==============

from app.llm.file_classifier import RawFile, classify_file, classify_files, is_image_file

# ============== PIPELINE EXPORTS ==============

from app.llm.message_assembler import assemble_messages
from app.llm.model_selector import InstructionSet, ModelSelection, load_instructions, select_model
from app.llm.streaming import StreamSessionDriver, format_frame, DONE_FRAME
from app.llm.transcript import compact_conversation
from app.llm.tutor import TutorDependencies, TutorSession

__all__ = [
    # Schemas
    "Role",
    "MessageKind",
    "ImageMimeType",
    "InputText",
    "InputImage",
    "Message",
    "Conversation",
    "TutorResponse",
    "parse_conversation",
    "conversation_to_wire",
    # Attachments
    "RawFile",
    "classify_file",
    "classify_files",
    "is_image_file",
    # Pipeline
    "assemble_messages",
    "InstructionSet",
    "ModelSelection",
    "load_instructions",
    "select_model",
    "StreamSessionDriver",
    "format_frame",
    "DONE_FRAME",
    "compact_conversation",
    "TutorDependencies",
    "TutorSession",
]
