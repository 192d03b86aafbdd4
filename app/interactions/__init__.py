# FILE: app/interactions/__init__.py
"""
Interaction logging: record schema, pseudonymisation, SQLAlchemy store.
"""

from .schema import (
    INTERACTION_SCHEMA,
    INTERACTION_KEYS,
    ValidationError,
    validate_against_schema,
)
from .pseudonym import generate_pseudo_id, student_id_for, UNIDENTIFIED
from .store import InteractionStore
from .logger import build_interaction_record, log_interaction

__all__ = [
    "INTERACTION_SCHEMA",
    "INTERACTION_KEYS",
    "ValidationError",
    "validate_against_schema",
    "generate_pseudo_id",
    "student_id_for",
    "UNIDENTIFIED",
    "InteractionStore",
    "build_interaction_record",
    "log_interaction",
]
