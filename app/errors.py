# FILE: app/errors.py
"""
Error taxonomy for the tutor backend.

- InputError: malformed request payload (chat history, content blocks). 400.
- ProviderError: the model call failed. Never retried.
- ConfigError: missing or weak configuration (secret keys, prompt files).

Schema validation errors for interaction records live in
app/interactions/schema.py next to the schema they enforce.
"""

from typing import Optional


class TutorError(Exception):
    """Base class for all tutor backend errors."""


class InputError(TutorError):
    """Client sent a payload the pipeline cannot interpret."""


class ProviderError(TutorError):
    """The underlying model call raised or reported a failure."""

    def __init__(self, message: str, *, partial: bool = False, cause: Optional[BaseException] = None):
        super().__init__(message)
        # True when some output had already been flushed to the client
        self.partial = partial
        self.cause = cause


class ConfigError(TutorError):
    """Configuration is missing or unusable. Not recoverable in-band."""
