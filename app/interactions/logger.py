# FILE: app/interactions/logger.py
"""
Interaction logging for completed tutor turns.

Called once per finished turn, after the response has gone to the client
(FastAPI background task). log_interaction() never raises: every failure is
reported through the module logger only, so analytics problems cannot fail
a turn that already succeeded.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from app.errors import ConfigError
from app.interactions.pseudonym import student_id_for
from app.interactions.schema import ValidationError
from app.interactions.store import InteractionStore

logger = logging.getLogger(__name__)


def make_interaction_id(course_id: str, assignment_id: str, timestamp: int) -> str:
    middle = f"--{assignment_id}" if assignment_id else ""
    return f"{course_id}{middle}--{timestamp}"


def build_interaction_record(
    *,
    username: Optional[str],
    user_message: Optional[str],
    response: Optional[str],
    messages: List[Dict[str, Any]],
    model_used: str,
    secret_key: Optional[str],
    course_id: str,
    assignment_id: str = "",
    timestamp: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build the record for one turn.

    `messages` is the prior history plus this turn's output, in wire form;
    the last two entries are dropped from the stored context.
    Raises ConfigError when a username is given but the HMAC secret is weak.
    """
    ts = timestamp if timestamp is not None else int(time.time() * 1000)
    return {
        "id": make_interaction_id(course_id, assignment_id, ts),
        "student_id": student_id_for(username, secret_key),
        "course_id": course_id,
        "assignment_id": assignment_id,
        "timestamp": ts,
        "student_request": user_message or "",
        "response_with_textbook": response,
        "model_used": model_used,
        "context_without_textbook": list(messages[:-2]),
    }


def log_interaction(store: InteractionStore, **record_fields: Any) -> bool:
    """Build and upsert one record. Returns True when it was written."""
    try:
        record = build_interaction_record(**record_fields)
    except ConfigError as e:
        logger.error(f"[interactions] Cannot pseudonymise student, interaction not logged: {e}")
        return False

    try:
        store.upsert(record)
        return True
    except ValidationError as e:
        logger.warning(f"[interactions] Upload failed: {e}")
    except Exception as e:
        logger.exception("[interactions] Upload failed: %s", e)
    return False
