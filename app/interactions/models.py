# FILE: app/interactions/models.py
"""
SQLAlchemy ORM model for the interaction log.

One row per completed tutor turn. Rows are addressed by (id, student_id);
student_id is the partition key of the record schema. context_without_textbook
is stored as JSON because it is either a string or a list of message objects.
"""

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import BigInteger, Column, DateTime, JSON, String, Text

from app.db import Base


class Interaction(Base):
    __tablename__ = "interactions"

    id = Column(String(255), primary_key=True)
    student_id = Column(String(64), primary_key=True, index=True)
    course_id = Column(String(100), nullable=False, index=True)
    assignment_id = Column(String(255), nullable=False, default="")
    timestamp = Column(BigInteger, nullable=False)  # epoch milliseconds
    student_request = Column(Text, nullable=False)
    response_with_textbook = Column(Text, nullable=True)
    response_without_textbook = Column(Text, nullable=True)
    model_used = Column(String(100), nullable=False)
    context_without_textbook = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Interaction":
        return cls(
            id=record["id"],
            student_id=record["student_id"],
            course_id=record["course_id"],
            assignment_id=record["assignment_id"],
            timestamp=int(record["timestamp"]),
            student_request=record["student_request"],
            response_with_textbook=record.get("response_with_textbook"),
            response_without_textbook=record.get("response_without_textbook"),
            model_used=record["model_used"],
            context_without_textbook=record["context_without_textbook"],
        )

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "assignment_id": self.assignment_id,
            "timestamp": self.timestamp,
            "student_request": self.student_request,
            "response_with_textbook": self.response_with_textbook,
            "response_without_textbook": self.response_without_textbook,
            "model_used": self.model_used,
            "context_without_textbook": self.context_without_textbook,
        }
