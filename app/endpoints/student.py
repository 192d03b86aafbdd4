# FILE: app/endpoints/student.py
"""
Student interaction endpoints.

POST /interaction/stream
    Body: multipart form (with file uploads) or JSON.
      chatHistory   array, or JSON string of an array (optional)
      newMessage    the student's text for this turn
      cellType      "grader" | "free_response" | anything else
      stream        default true; false / "false" returns one JSON blob
      username      optional, pseudonymised before logging
      courseId / assignmentId   optional, default from settings
    Every uploaded file part is an attachment, in form order.

POST /end
    Plain acknowledgement for the notebook extension's session end.

v1.2: Provider client and instruction texts built once per settings value.
v1.1: Interaction logging moved to a background task; a failed log write
      no longer delays the stream's terminal record.
v1.0: Initial streaming + non-streaming tutor endpoint.
"""

import json
import logging
import traceback
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from starlette.datastructures import UploadFile

from app.db import SessionLocal
from app.errors import InputError, ProviderError
from app.interactions import InteractionStore, log_interaction
from app.llm.file_classifier import RawFile
from app.llm.model_selector import load_instructions
from app.llm.schemas import Conversation, conversation_to_wire, parse_conversation
from app.llm.tutor import TutorDependencies, TutorSession
from app.providers.registry import ResponsesProvider, build_openai_client
from config.settings import TutorSettings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Student"])

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


# =============================================================================
# DEPENDENCIES
# =============================================================================

@lru_cache(maxsize=4)
def build_tutor_dependencies(settings: TutorSettings) -> TutorDependencies:
    """
    Provider client, instruction texts and model for a settings snapshot.

    Built once per settings value so requests share one client connection
    pool and the prompt files are read once.
    """
    client = build_openai_client(settings)
    logger.info(f"[student] Built tutor dependencies (model={settings.model}, prompts={settings.prompts_dir})")
    return TutorDependencies(
        provider=ResponsesProvider(client),
        instructions=load_instructions(settings.prompts_dir),
        model=settings.model,
    )


def get_tutor_dependencies(settings: TutorSettings = Depends(get_settings)) -> TutorDependencies:
    return build_tutor_dependencies(settings)


def get_interaction_store() -> InteractionStore:
    return InteractionStore(SessionLocal)


# =============================================================================
# REQUEST PARSING
# =============================================================================

async def read_turn_request(request: Request) -> Tuple[Dict[str, Any], List[RawFile]]:
    """Split the request body into plain fields and uploaded files."""
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data") or content_type.startswith(
        "application/x-www-form-urlencoded"
    ):
        form = await request.form()
        fields: Dict[str, Any] = {}
        files: List[RawFile] = []
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                data = await value.read()
                files.append(RawFile(name=value.filename or "", data=data, content_type=value.content_type))
            else:
                fields[key] = value
        return fields, files

    try:
        body = await request.json()
    except ValueError:
        body = {}
    return (body if isinstance(body, dict) else {}), []


def parse_chat_history(raw: Any) -> Conversation:
    """
    chatHistory as sent by the notebook: an array, or an array serialised
    as a JSON string (multipart bodies). Missing or empty means a new chat.
    """
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise InputError("Invalid chatHistory format. Expected valid JSON string representing an array.")
        if not isinstance(raw, list):
            raise InputError("Invalid chatHistory format. Expected an array.")
    elif not isinstance(raw, list):
        raise InputError("Invalid chatHistory format. Expected an array or JSON string.")
    return parse_conversation(raw)


def streaming_enabled(raw: Any) -> bool:
    return raw is not False and raw != "false"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


# =============================================================================
# LOGGING
# =============================================================================

def log_finished_turn(
    store: InteractionStore,
    session: TutorSession,
    *,
    username: Optional[str],
    course_id: str,
    assignment_id: str,
    secret_key: Optional[str],
) -> None:
    """Background task: record the turn if it produced a result."""
    result = session.result
    if result is None:
        logger.info("[student] Turn produced no result; interaction not logged")
        return

    log_interaction(
        store,
        username=username,
        user_message=session.new_message,
        response=result.first_response_text(),
        messages=conversation_to_wire(session.chat_history + result.response),
        model_used=session.prepare().selection.model,
        secret_key=secret_key,
        course_id=course_id,
        assignment_id=assignment_id,
    )


async def _stream_with_boundary(session: TutorSession):
    # Error and [DONE] records are already sent by the session
    try:
        async for frame in session.stream():
            yield frame
    except ProviderError as e:
        logger.error(f"[student] Streaming turn failed (partial={e.partial}): {e}")


# =============================================================================
# ROUTES
# =============================================================================

@router.post("/interaction/stream")
async def interaction_stream(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: TutorSettings = Depends(get_settings),
    deps: TutorDependencies = Depends(get_tutor_dependencies),
    store: InteractionStore = Depends(get_interaction_store),
):
    fields, files = await read_turn_request(request)

    try:
        chat_history = parse_chat_history(fields.get("chatHistory"))
    except InputError as e:
        logger.warning(f"[student] Rejected chatHistory: {e}")
        return JSONResponse(status_code=400, content={"error": str(e)})

    session = TutorSession(
        deps,
        chat_history,
        _optional_str(fields.get("newMessage")),
        files,
        _optional_str(fields.get("cellType")),
    )

    background_tasks.add_task(
        log_finished_turn,
        store,
        session,
        username=_optional_str(fields.get("username")),
        course_id=_optional_str(fields.get("courseId")) or settings.course_id,
        assignment_id=_optional_str(fields.get("assignmentId")) or settings.assignment_id,
        secret_key=settings.hmac_key,
    )

    stream = streaming_enabled(fields.get("stream", True))
    logger.info(
        f"[student] Turn: stream={stream} history={len(chat_history)} files={len(files)} "
        f"cell_type={fields.get('cellType')}"
    )

    if stream:
        return StreamingResponse(
            _stream_with_boundary(session),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    try:
        result = await session.respond()
    except ProviderError as e:
        logger.error(f"[student] Turn failed: {e}")
        content: Dict[str, Any] = {"error": str(e) or "Internal server error"}
        if settings.is_development:
            content["details"] = "".join(traceback.format_exception(type(e), e, e.__traceback__))
        return JSONResponse(status_code=500, content=content)

    return JSONResponse(content=result.to_wire())


@router.post("/end")
async def end_session():
    return PlainTextResponse("Create a new user")
