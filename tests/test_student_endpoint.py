# FILE: tests/test_student_endpoint.py
"""
Tests for the student HTTP endpoints.

The provider, settings and interaction store are swapped through FastAPI
dependency overrides; no network or on-disk database is touched.
"""

import json
import sys
from dataclasses import replace
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest
from fastapi.testclient import TestClient

from app.endpoints.student import build_tutor_dependencies, get_interaction_store, get_tutor_dependencies
from app.errors import ProviderError
from app.interactions.models import Interaction
from app.interactions.pseudonym import UNIDENTIFIED, generate_pseudo_id
from app.llm.model_selector import load_instructions
from app.llm.tutor import TutorDependencies
from config.settings import get_settings
from fakes import TEST_HMAC_KEY, TEST_MODEL, FakeProvider, text_events
from main import app


def _output(text):
    return [SimpleNamespace(type="message", role="assistant", content=[SimpleNamespace(type="output_text", text=text)])]


@pytest.fixture
def provider():
    return FakeProvider(events=text_events("Hel", "lo"), output=_output("4"))


@pytest.fixture
def client(provider, instructions, test_settings, interaction_store):
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_tutor_dependencies] = lambda: TutorDependencies(
        provider=provider, instructions=instructions, model=TEST_MODEL
    )
    app.dependency_overrides[get_interaction_store] = lambda: interaction_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def stored(session_factory):
    """Return all logged interaction rows as records."""
    def _rows():
        db = session_factory()
        try:
            return [row.to_record() for row in db.query(Interaction).all()]
        finally:
            db.close()
    return _rows


def _sse_payloads(text):
    payloads = []
    for record in text.split("\n\n"):
        if not record:
            continue
        assert record.startswith("data: ")
        body = record[len("data: "):]
        payloads.append(body if body == "[DONE]" else json.loads(body))
    return payloads


class TestNonStreaming:
    def test_json_turn(self, client, provider, stored):
        history = [
            {"type": "message", "role": "user", "content": "hello"},
            {"type": "message", "role": "assistant", "content": "hi"},
        ]
        response = client.post(
            "/interaction/stream",
            json={
                "chatHistory": history,
                "newMessage": "What is 2+2?",
                "cellType": "grader",
                "stream": False,
                "username": "alice",
                "assignmentId": "lab01",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["response"] == [{"type": "message", "role": "assistant", "content": "4"}]
        assert body["promptSuggestions"] == []
        assert [m["content"] for m in body["newChatHistory"]] == ["hello", "hi", "What is 2+2?", "4"]
        assert provider.calls[0]["instructions"] == "GRADER PROMPT"

        rows = stored()
        assert len(rows) == 1
        row = rows[0]
        assert row["student_id"] == generate_pseudo_id("alice", TEST_HMAC_KEY)
        assert row["id"].startswith("data8--lab01--")
        assert row["student_request"] == "What is 2+2?"
        assert row["response_with_textbook"] == "4"
        assert row["model_used"] == TEST_MODEL
        # History plus output, minus the last two entries
        assert row["context_without_textbook"] == history[:1]

    def test_multipart_with_files(self, client, provider):
        response = client.post(
            "/interaction/stream",
            data={
                "chatHistory": json.dumps([]),
                "newMessage": "why does this fail?",
                "stream": "false",
            },
            files=[
                ("files", ("hw1.py", b"print(x)", "text/x-python")),
                ("files", ("data.csv", b"a,b\n1,2\n", "text/csv")),
            ],
        )

        assert response.status_code == 200
        sent = provider.calls[0]["input"][-1]["content"]
        assert [block["type"] for block in sent] == ["input_text", "input_text", "input_text"]
        assert sent[0]["text"].startswith("Python Code File (hw1.py)")
        assert sent[1]["text"].startswith("CSV Data File (data.csv)")
        assert sent[2]["text"] == "why does this fail?"
        # Compacted user turn keeps only its first text block, the first attachment
        user_turn = response.json()["newChatHistory"][0]
        assert user_turn["content"].startswith("Python Code File (hw1.py)")

    def test_provider_failure_is_500(self, client, provider, stored):
        provider.error = ProviderError("quota exceeded")
        response = client.post("/interaction/stream", json={"newMessage": "hi", "stream": False})
        assert response.status_code == 500
        assert response.json() == {"error": "quota exceeded"}
        assert stored() == []

    def test_provider_failure_details_in_development(self, client, provider, test_settings):
        app.dependency_overrides[get_settings] = lambda: replace(test_settings, app_env="development")
        provider.error = ProviderError("quota exceeded")
        response = client.post("/interaction/stream", json={"newMessage": "hi", "stream": False})
        assert response.status_code == 500
        assert "details" in response.json()

    def test_anonymous_turn_logged_unidentified(self, client, stored):
        client.post("/interaction/stream", json={"newMessage": "hi", "stream": False})
        assert stored()[0]["student_id"] == UNIDENTIFIED


class TestChatHistoryValidation:
    @pytest.mark.parametrize(
        "chat_history,message",
        [
            ("{not json", "Invalid chatHistory format. Expected valid JSON string representing an array."),
            ('{"role": "user"}', "Invalid chatHistory format. Expected an array."),
        ],
    )
    def test_bad_string(self, client, provider, chat_history, message):
        response = client.post("/interaction/stream", data={"chatHistory": chat_history, "newMessage": "hi"})
        assert response.status_code == 400
        assert response.json() == {"error": message}
        assert provider.calls == []

    def test_bad_type(self, client):
        response = client.post("/interaction/stream", json={"chatHistory": {"role": "user"}, "newMessage": "hi"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid chatHistory format. Expected an array or JSON string."}

    def test_bad_entry(self, client):
        response = client.post(
            "/interaction/stream",
            json={"chatHistory": [{"role": "robot", "content": "beep"}], "newMessage": "hi"},
        )
        assert response.status_code == 400
        assert "robot" in response.json()["error"]


class TestStreaming:
    def test_stream_frames(self, client, stored):
        response = client.post("/interaction/stream", json={"newMessage": "Say hello", "username": "bob"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"

        payloads = _sse_payloads(response.text)
        assert payloads[0] == {"type": "message_delta", "content": "Hel", "role": "assistant"}
        assert payloads[1] == {"type": "message_delta", "content": "lo", "role": "assistant"}
        assert payloads[2]["type"] == "final_response"
        assert payloads[2]["data"]["response"][0]["content"] == "Hello"
        assert payloads[3] == "[DONE]"

        rows = stored()
        assert len(rows) == 1
        assert rows[0]["response_with_textbook"] == "Hello"

    def test_stream_failure_sends_error_frame(self, client, provider, stored):
        provider.error = ProviderError("invalid api key")
        response = client.post("/interaction/stream", json={"newMessage": "hi"})

        assert response.status_code == 200
        assert _sse_payloads(response.text) == [{"type": "error", "error": "invalid api key"}, "[DONE]"]
        assert stored() == []


class TestMisc:
    def test_end(self, client):
        response = client.post("/end")
        assert response.status_code == 200
        assert response.text == "Create a new user"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestTutorDependencies:
    """The provider client and prompt texts are shared across requests."""

    @pytest.fixture
    def settings(self, test_settings):
        prompts_dir = Path(__file__).parent.parent / "app" / "prompts"
        build_tutor_dependencies.cache_clear()
        yield replace(test_settings, prompts_dir=str(prompts_dir))
        build_tutor_dependencies.cache_clear()

    def test_same_bundle_for_same_settings(self, settings):
        with patch("app.endpoints.student.load_instructions", wraps=load_instructions) as loader:
            first = get_tutor_dependencies(settings)
            second = get_tutor_dependencies(settings)

        assert first is second
        assert first.provider is second.provider
        assert loader.call_count == 1

    def test_new_bundle_when_settings_change(self, settings):
        first = get_tutor_dependencies(settings)
        second = get_tutor_dependencies(replace(settings, model="gpt-other"))
        assert first is not second
        assert second.model == "gpt-other"
