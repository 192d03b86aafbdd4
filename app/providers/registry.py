# FILE: app/providers/registry.py
"""
Provider access for tutor turns (OpenAI Responses API).

- Single async entrypoint: ResponsesProvider.create(...)
- Azure OpenAI is used when AZURE_OPENAI_ENDPOINT is configured; otherwise
  the public OpenAI endpoint.
- The provider payload is built with to_provider_input(), which drops every
  transport-only annotation (display flags) without touching the
  conversation kept for history.

create(stream=False) returns the SDK Response (read `.output`).
create(stream=True) returns an async iterator of typed delta events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import AsyncAzureOpenAI, AsyncOpenAI

from app.errors import ConfigError, ProviderError
from app.llm.schemas import Conversation
from config.settings import TutorSettings

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    provider_id: str
    display_name: str
    env_key_name: str


PROVIDERS: Dict[str, ProviderConfig] = {
    "openai": ProviderConfig("openai", "OpenAI", "OPENAI_API_KEY"),
    "azure": ProviderConfig("azure", "Azure OpenAI", "AZURE_OPEN_AI_KEY"),
}


def build_openai_client(settings: TutorSettings) -> Any:
    """Create the async SDK client for the configured endpoint."""
    provider = PROVIDERS["azure" if settings.uses_azure else "openai"]
    if not settings.api_key:
        raise ConfigError(f"{provider.env_key_name} not set")

    logger.info(f"[registry] Using {provider.display_name} (model={settings.model})")
    if settings.uses_azure:
        return AsyncAzureOpenAI(
            api_key=settings.api_key,
            azure_endpoint=settings.azure_endpoint,
            api_version=settings.api_version,
        )
    return AsyncOpenAI(api_key=settings.api_key)


def to_provider_input(conversation: Conversation) -> List[Dict[str, Any]]:
    """Provider-facing message list, stripped of display flags."""
    payload: List[Dict[str, Any]] = []
    for message in conversation:
        item = message.to_provider()
        if item is None:
            logger.debug("[registry] Skipping reasoning message without provider id")
            continue
        payload.append(item)
    return payload


class ResponsesProvider:
    """Thin wrapper over client.responses.create with error normalisation."""

    def __init__(self, client: Any):
        self._client = client

    async def create(
        self,
        *,
        model: str,
        input: List[Dict[str, Any]],
        instructions: Optional[str],
        stream: bool = False,
    ) -> Any:
        try:
            return await self._client.responses.create(
                model=model,
                input=input,
                instructions=instructions,
                stream=stream,
            )
        except Exception as exc:
            logger.exception("[registry] Responses API call failed: %s", exc)
            raise ProviderError(str(exc) or "Provider call failed", cause=exc) from exc
