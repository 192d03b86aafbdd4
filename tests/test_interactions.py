# FILE: tests/test_interactions.py
"""
Tests for interaction logging: schema validation, pseudonyms, the
SQLAlchemy store and the never-raising logger.
"""

import hashlib
import hmac
import sys
from pathlib import Path
from unittest.mock import Mock

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from app.errors import ConfigError
from app.interactions.logger import build_interaction_record, log_interaction, make_interaction_id
from app.interactions.pseudonym import UNIDENTIFIED, generate_pseudo_id, student_id_for
from app.interactions.schema import INTERACTION_SCHEMA, ValidationError, validate_against_schema
from fakes import TEST_HMAC_KEY


def _record(**overrides):
    record = {
        "id": "data8--lab01--1700000000000",
        "student_id": "abc123",
        "course_id": "data8",
        "assignment_id": "lab01",
        "timestamp": 1700000000000,
        "student_request": "What is 2+2?",
        "response_with_textbook": "4",
        "model_used": "gpt-test",
        "context_without_textbook": [{"type": "message", "role": "user", "content": "hi"}],
    }
    record.update(overrides)
    return record


def _messages(n):
    return [{"type": "message", "role": "user" if i % 2 == 0 else "assistant", "content": f"m{i}"} for i in range(n)]


class TestSchemaValidation:
    def test_valid_record(self):
        validate_against_schema(INTERACTION_SCHEMA, _record())

    def test_missing_student_id_rejected(self):
        record = _record()
        del record["student_id"]
        with pytest.raises(ValidationError) as exc_info:
            validate_against_schema(INTERACTION_SCHEMA, record)
        assert "Missing required field 'student_id'" in exc_info.value.details

    def test_wrong_type_rejected(self):
        with pytest.raises(ValidationError):
            validate_against_schema(INTERACTION_SCHEMA, _record(timestamp="yesterday"))

    def test_bool_is_not_a_number(self):
        with pytest.raises(ValidationError):
            validate_against_schema(INTERACTION_SCHEMA, _record(timestamp=True))

    def test_array_items_checked_shallowly(self):
        with pytest.raises(ValidationError):
            validate_against_schema(INTERACTION_SCHEMA, _record(context_without_textbook=["not an object"]))
        # Nested objects are not inspected
        validate_against_schema(INTERACTION_SCHEMA, _record(context_without_textbook=[{"anything": [1, 2]}]))

    def test_context_may_be_string(self):
        validate_against_schema(INTERACTION_SCHEMA, _record(context_without_textbook="flattened"))

    def test_optional_fields(self):
        record = _record()
        del record["response_with_textbook"]
        validate_against_schema(INTERACTION_SCHEMA, record)
        validate_against_schema(INTERACTION_SCHEMA, _record(response_with_textbook=None))

    def test_partial(self):
        validate_against_schema(INTERACTION_SCHEMA, {"course_id": "data8"}, allow_partial=True)


class TestPseudonym:
    def test_hmac_of_normalised_identifier(self):
        expected = hmac.new(TEST_HMAC_KEY.encode(), b"student@school.edu", hashlib.sha256).hexdigest()
        assert generate_pseudo_id("  Student@School.edu ", TEST_HMAC_KEY) == expected

    def test_stable(self):
        assert generate_pseudo_id("alice", TEST_HMAC_KEY) == generate_pseudo_id("ALICE", TEST_HMAC_KEY)
        assert generate_pseudo_id("alice", TEST_HMAC_KEY) != generate_pseudo_id("bob", TEST_HMAC_KEY)

    def test_short_key_rejected(self):
        with pytest.raises(ConfigError):
            generate_pseudo_id("alice", "short")
        with pytest.raises(ConfigError):
            generate_pseudo_id("alice", None)

    def test_no_username(self):
        assert student_id_for(None, None) == UNIDENTIFIED
        assert student_id_for("", TEST_HMAC_KEY) == UNIDENTIFIED


class TestBuildRecord:
    def test_id_format(self):
        assert make_interaction_id("data8", "lab01", 123) == "data8--lab01--123"
        assert make_interaction_id("data8", "", 123) == "data8--123"

    def test_record_fields(self):
        record = build_interaction_record(
            username="alice",
            user_message="What is 2+2?",
            response="4",
            messages=_messages(4),
            model_used="gpt-test",
            secret_key=TEST_HMAC_KEY,
            course_id="data8",
            assignment_id="lab01",
            timestamp=1700000000000,
        )
        assert record["id"] == "data8--lab01--1700000000000"
        assert record["student_id"] == generate_pseudo_id("alice", TEST_HMAC_KEY)
        assert record["context_without_textbook"] == _messages(4)[:2]
        assert record["student_request"] == "What is 2+2?"
        validate_against_schema(INTERACTION_SCHEMA, record)

    def test_missing_message_logged_as_empty(self):
        record = build_interaction_record(
            username=None,
            user_message=None,
            response="ok",
            messages=[],
            model_used="gpt-test",
            secret_key=None,
            course_id="data8",
        )
        assert record["student_request"] == ""
        assert record["student_id"] == UNIDENTIFIED
        assert record["context_without_textbook"] == []
        assert isinstance(record["timestamp"], int)


class TestInteractionStore:
    def test_upsert_and_read(self, interaction_store):
        stored = interaction_store.upsert(_record())
        assert stored["id"] == "data8--lab01--1700000000000"
        loaded = interaction_store.read_by_id("data8--lab01--1700000000000", "abc123")
        assert loaded["context_without_textbook"] == _record()["context_without_textbook"]
        assert loaded["response_without_textbook"] is None

    def test_upsert_replaces_same_key(self, interaction_store):
        interaction_store.upsert(_record())
        interaction_store.upsert(_record(response_with_textbook="four"))
        assert interaction_store.read_by_id("data8--lab01--1700000000000", "abc123")["response_with_textbook"] == "four"

    def test_read_requires_partition_key(self, interaction_store):
        interaction_store.upsert(_record())
        assert interaction_store.read_by_id("data8--lab01--1700000000000", "someone-else") is None

    def test_missing_partition_key(self, interaction_store):
        with pytest.raises(ValidationError):
            interaction_store.upsert(_record(student_id=""))

    def test_invalid_record_not_written(self, interaction_store):
        with pytest.raises(ValidationError):
            interaction_store.upsert(_record(model_used=None))
        assert interaction_store.read_by_id("data8--lab01--1700000000000", "abc123") is None


class TestLogInteraction:
    def _fields(self, **overrides):
        fields = dict(
            username="alice",
            user_message="hi",
            response="hello",
            messages=_messages(3),
            model_used="gpt-test",
            secret_key=TEST_HMAC_KEY,
            course_id="data8",
            assignment_id="lab01",
            timestamp=42,
        )
        fields.update(overrides)
        return fields

    def test_writes_record(self, interaction_store):
        assert log_interaction(interaction_store, **self._fields()) is True
        student_id = generate_pseudo_id("alice", TEST_HMAC_KEY)
        assert interaction_store.read_by_id("data8--lab01--42", student_id) is not None

    def test_weak_key_does_not_raise(self, interaction_store):
        assert log_interaction(interaction_store, **self._fields(secret_key="short")) is False

    def test_validation_failure_does_not_raise(self, interaction_store):
        assert log_interaction(interaction_store, **self._fields(response=123)) is False

    def test_store_failure_does_not_raise(self):
        store = Mock()
        store.upsert.side_effect = RuntimeError("database is locked")
        assert log_interaction(store, **self._fields()) is False
        store.upsert.assert_called_once()
