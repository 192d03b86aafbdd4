# FILE: app/llm/tutor.py
"""
Tutor turn pipeline.

inbound turn -> classify attachments -> assemble messages -> select
instructions/model -> provider call -> streaming driver -> compaction

Collaborators (provider, instruction texts, model id) arrive as one
TutorDependencies bundle so tests can substitute fakes.

Usage:
    session = TutorSession(deps, chat_history, "What is 2+2?", files, "grader")
    result = await session.respond()            # one JSON blob
    async for record in session.stream():       # SSE records
        ...
    session.result                              # TutorResponse once finished
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, List, Optional, Sequence

from app.errors import ProviderError
from app.llm.file_classifier import RawFile
from app.llm.message_assembler import assemble_messages
from app.llm.model_selector import InstructionSet, ModelSelection, select_model
from app.llm.schemas import Conversation, Message, TutorResponse
from app.llm.streaming import StreamSessionDriver, error_frames
from app.providers.registry import to_provider_input

logger = logging.getLogger(__name__)


@dataclass
class TutorDependencies:
    provider: Any  # ResponsesProvider or a fake with the same create()
    instructions: InstructionSet
    model: str


@dataclass
class PreparedTurn:
    conversation: List[Message]
    selection: ModelSelection


class TutorSession:
    """One request-scoped tutor turn."""

    def __init__(
        self,
        deps: TutorDependencies,
        chat_history: Conversation,
        new_message: Optional[str],
        files: Sequence[RawFile] = (),
        cell_type: Optional[str] = None,
    ):
        self.deps = deps
        self.chat_history = list(chat_history or [])
        self.new_message = new_message
        self.files = list(files or [])
        self.cell_type = cell_type
        self.result: Optional[TutorResponse] = None
        self._turn: Optional[PreparedTurn] = None

    def prepare(self) -> PreparedTurn:
        if self._turn is None:
            conversation = assemble_messages(self.chat_history, self.new_message, self.files)
            selection = select_model(
                conversation,
                self.cell_type,
                self.deps.instructions,
                self.deps.model,
                self.files,
            )
            self._turn = PreparedTurn(conversation=conversation, selection=selection)
        return self._turn

    async def _call_provider(self, stream: bool) -> Any:
        turn = self.prepare()
        logger.info(
            f"[tutor] Provider call: model={turn.selection.model} stream={stream} "
            f"messages={len(turn.conversation)} files={len(self.files)}"
        )
        return await self.deps.provider.create(
            model=turn.selection.model,
            input=to_provider_input(turn.conversation),
            instructions=turn.selection.instructions,
            stream=stream,
        )

    async def respond(self) -> TutorResponse:
        """Non-streaming turn."""
        try:
            response = await self._call_provider(stream=False)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(str(e), cause=e) from e
        output = response.get("output") if isinstance(response, dict) else getattr(response, "output", None)
        driver = StreamSessionDriver(self.prepare().conversation)
        self.result = driver.complete(output or [])
        return self.result

    async def stream(self) -> AsyncIterator[str]:
        """
        Streaming turn as SSE records.

        Raises ProviderError after emitting the error record and terminal
        marker, so the caller's error boundary still sees the failure.
        """
        driver = StreamSessionDriver(self.prepare().conversation)
        try:
            events = await self._call_provider(stream=True)
        except Exception as e:
            for frame in error_frames(e):
                yield frame
            if isinstance(e, ProviderError):
                raise
            raise ProviderError(str(e), cause=e) from e

        async for frame in driver.run(events):
            yield frame
        self.result = driver.result
