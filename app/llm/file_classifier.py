# FILE: app/llm/file_classifier.py
"""
Attachment classification for tutor turns.

Version: 1.0.0

Turns each uploaded file into exactly ONE content block:

FILE BUCKETS (first match wins):
1. IMAGE (extension)  - .jpg, .jpeg, .png, .gif, .bmp, .webp
2. IMAGE (sniffed)    - PNG / JPEG / GIF / BMP / WebP magic bytes
3. PYTHON             - .py
4. CSV                - .csv
5. TEXT               - .txt .md .json .xml .html .css .js .ts .jsx .tsx
6. UNSUPPORTED        - anything else, placeholder text only

Every block produced here is provider input only: it is marked
non-displayable so it never renders back in the notebook transcript.

Usage:
    from app.llm.file_classifier import RawFile, classify_file

    block = classify_file(RawFile(name="hw1.py", data=b"print(1)"))
"""

import base64
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Union

from app.llm.schemas import ImageMimeType, InputImage, InputText

logger = logging.getLogger(__name__)


# =============================================================================
# FILE BUCKET ENUM
# =============================================================================

class FileBucket(str, Enum):
    IMAGE = "IMAGE"
    PYTHON = "PYTHON"
    CSV = "CSV"
    TEXT = "TEXT"
    UNSUPPORTED = "UNSUPPORTED"


# =============================================================================
# FILE EXTENSIONS
# =============================================================================

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"}

# Recognised plain-text formats, labelled by their upper-cased extension
TEXT_EXTENSIONS = {
    ".txt", ".md", ".json", ".xml", ".html",
    ".css", ".js", ".ts", ".jsx", ".tsx",
}

_EXTENSION_MIME_TYPES = {
    ".jpg": ImageMimeType.JPEG,
    ".jpeg": ImageMimeType.JPEG,
    ".png": ImageMimeType.PNG,
    ".gif": ImageMimeType.GIF,
    ".bmp": ImageMimeType.BMP,
    ".webp": ImageMimeType.WEBP,
}

UNSUPPORTED_NOTICE = "[File content could not be processed. Please convert to a supported format.]"


# =============================================================================
# RAW FILE
# =============================================================================

@dataclass
class RawFile:
    """
    One uploaded file as received from the HTTP layer.

    `content_type` is the client-declared MIME type; it is informational
    only, classification never trusts it.
    """
    name: str
    data: bytes
    content_type: Optional[str] = None

    @property
    def extension(self) -> str:
        return Path(self.name).suffix.lower() if self.name else ""

    @property
    def size_bytes(self) -> int:
        return len(self.data or b"")

    def decode_text(self) -> str:
        return (self.data or b"").decode("utf-8", errors="replace")


# =============================================================================
# IMAGE DETECTION
# =============================================================================

def sniff_image_mime(data: Optional[bytes]) -> Optional[ImageMimeType]:
    """
    Detect an image by its magic bytes.

    Only the first 12 bytes are inspected. Returns None when nothing matches
    or when fewer than 4 bytes are available.
    """
    if not data or len(data) < 4:
        return None

    head = data[:12]
    if head[:4] == b"\x89PNG":
        return ImageMimeType.PNG
    if head[:3] == b"\xff\xd8\xff":
        return ImageMimeType.JPEG
    if head[:4] == b"GIF8":
        return ImageMimeType.GIF
    if head[:2] == b"BM":
        return ImageMimeType.BMP
    if len(head) >= 12 and head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return ImageMimeType.WEBP
    return None


def image_mime_for(file: Optional[RawFile]) -> Optional[ImageMimeType]:
    """Image MIME type by extension first, then by content."""
    if not file:
        return None
    by_extension = _EXTENSION_MIME_TYPES.get(file.extension)
    if by_extension:
        return by_extension
    return sniff_image_mime(file.data)


def is_image_file(file: Optional[RawFile]) -> bool:
    return image_mime_for(file) is not None


# =============================================================================
# MAIN CLASSIFICATION FUNCTION
# =============================================================================

def bucket_for(file: RawFile) -> FileBucket:
    """Pick the single bucket a file belongs to."""
    if image_mime_for(file):
        return FileBucket.IMAGE
    ext = file.extension
    if ext == ".py":
        return FileBucket.PYTHON
    if ext == ".csv":
        return FileBucket.CSV
    if ext in TEXT_EXTENSIONS:
        return FileBucket.TEXT
    return FileBucket.UNSUPPORTED


def classify_file(file: Optional[RawFile]) -> Optional[Union[InputText, InputImage]]:
    """
    Convert one uploaded file into a content block.

    Returns None for a missing or empty file; never raises for unknown
    or malformed content.
    """
    if not file or (not file.name and not file.data):
        return None

    bucket = bucket_for(file)
    name = file.name

    if bucket == FileBucket.IMAGE:
        block = InputImage(
            mime_type=image_mime_for(file),
            base64_data=base64.b64encode(file.data or b"").decode("ascii"),
            displayable=False,
        )
    elif bucket == FileBucket.PYTHON:
        block = InputText(text=f"Python Code File ({name}):\n\n{file.decode_text()}", displayable=False)
    elif bucket == FileBucket.CSV:
        block = InputText(text=f"CSV Data File ({name}):\n\n{file.decode_text()}", displayable=False)
    elif bucket == FileBucket.TEXT:
        label = file.extension[1:].upper()
        block = InputText(text=f"{label} File ({name}):\n\n{file.decode_text()}", displayable=False)
    else:
        block = InputText(
            text=f"Unsupported File Type ({file.extension}) - {name}:\n\n{UNSUPPORTED_NOTICE}",
            displayable=False,
        )

    logger.debug(f"[file_classifier] {name} -> {bucket.value} ({file.size_bytes} bytes)")
    return block


def classify_files(files: Iterable[Optional[RawFile]]) -> List[Union[InputText, InputImage]]:
    """Classify files in order, skipping empty ones."""
    blocks = []
    for file in files or []:
        block = classify_file(file)
        if block is not None:
            blocks.append(block)
    return blocks


# =============================================================================
# EXPORTS
# =============================================================================

__all__ = [
    "FileBucket",
    "RawFile",
    "sniff_image_mime",
    "image_mime_for",
    "is_image_file",
    "bucket_for",
    "classify_file",
    "classify_files",
    "IMAGE_EXTENSIONS",
    "TEXT_EXTENSIONS",
    "UNSUPPORTED_NOTICE",
]
