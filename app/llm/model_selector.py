# FILE: app/llm/model_selector.py
"""
Instruction and model selection for a tutor turn.

Instructions come from one of three prompt files chosen by the notebook
cell type:
- grader        -> grader_prompt.txt
- free_response -> free_prompt.txt
- anything else -> success_prompt.txt

Model selection is a single configured model for every turn. has_images()
is kept as its own function because it is where per-modality routing
will branch; today its result is only logged.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from app.errors import ConfigError
from app.llm.file_classifier import RawFile, is_image_file
from app.llm.schemas import Conversation

logger = logging.getLogger(__name__)


GRADER = "grader"
FREE_RESPONSE = "free_response"

PROMPT_FILES = {
    "grader": "grader_prompt.txt",
    "free_response": "free_prompt.txt",
    "success": "success_prompt.txt",
}


@dataclass(frozen=True)
class InstructionSet:
    grader: str
    free_response: str
    success: str

    def for_cell_type(self, cell_type: Optional[str]) -> str:
        if cell_type == GRADER:
            return self.grader
        if cell_type == FREE_RESPONSE:
            return self.free_response
        return self.success


@dataclass(frozen=True)
class ModelSelection:
    model: str
    instructions: str
    has_images: bool = False


def load_instructions(prompts_dir: Union[str, Path]) -> InstructionSet:
    """Read the three instruction texts from `prompts_dir`."""
    base = Path(prompts_dir)
    texts = {}
    for key, filename in PROMPT_FILES.items():
        path = base / filename
        try:
            texts[key] = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read instruction file {path}: {e}") from e
    logger.info(f"[selector] Loaded instructions from {base}")
    return InstructionSet(**texts)


def has_images(conversation: Conversation, files: Iterable[Optional[RawFile]] = ()) -> bool:
    """
    True if any message carries an image block, or any new file is an image
    by extension or magic bytes.
    """
    if any(is_image_file(f) for f in files or [] if f):
        return True
    return any(m.has_image() for m in conversation or [])


def select_model(
    conversation: Conversation,
    cell_type: Optional[str],
    instructions: InstructionSet,
    default_model: str,
    files: Iterable[Optional[RawFile]] = (),
) -> ModelSelection:
    images = has_images(conversation, files)
    logger.info(f"[selector] cell_type={cell_type or 'success'} model={default_model} has_images={images}")
    return ModelSelection(
        model=default_model,
        instructions=instructions.for_cell_type(cell_type),
        has_images=images,
    )
