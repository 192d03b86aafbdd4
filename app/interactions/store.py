# FILE: app/interactions/store.py
"""
Interaction store: validated upsert and keyed reads over SQLAlchemy.

Records are append-only by intent; upsert (session.merge on the composite
key) keeps a retried write from failing on a duplicate id.
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.interactions.models import Interaction
from app.interactions.schema import (
    INTERACTION_KEYS,
    INTERACTION_SCHEMA,
    ValidationError,
    validate_against_schema,
)

logger = logging.getLogger(__name__)


class InteractionStore:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        schema: Optional[Dict[str, Dict[str, Any]]] = None,
        interaction_keys: Optional[Dict[str, Any]] = None,
    ):
        self._session_factory = session_factory
        self.schema = schema or INTERACTION_SCHEMA
        self.interaction_keys = interaction_keys or INTERACTION_KEYS

    def validate(self, interaction: Dict[str, Any], allow_partial: bool = False) -> None:
        validate_against_schema(self.schema, interaction, allow_partial=allow_partial)

    def upsert(self, interaction: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate and write one interaction record.

        Raises ValidationError before touching the database when the
        partition key is missing or the record does not match the schema.
        """
        pk = self.interaction_keys["pk"]
        if not interaction.get(pk):
            raise ValidationError([f"Partition key field '{pk}' must be present on interaction"])

        self.validate(interaction, allow_partial=False)

        db = self._session_factory()
        try:
            row = db.merge(Interaction.from_record(interaction))
            db.commit()
            logger.info(f"[interactions] Upserted {row.id} (partition {row.student_id})")
            return row.to_record()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def read_by_id(self, id: str, partition_key_value: str) -> Optional[Dict[str, Any]]:
        db = self._session_factory()
        try:
            row = db.get(Interaction, (id, partition_key_value))
            return row.to_record() if row else None
        finally:
            db.close()
