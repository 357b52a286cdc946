"""OpenAI-compatible explanation provider."""

from __future__ import annotations

import logging

from openai import AsyncOpenAI

from codex_explain.models import EntityMetadata

logger = logging.getLogger(__name__)

# Bump when the prompt text changes: cached explanations are keyed on it.
PROMPT_VERSION = "v1"

_SYSTEM_PROMPT = (
    "You explain source code entities in plain English for technical and non-technical readers. "
    "Be concise, concrete, and avoid hallucinations."
)


class EmptyResponseError(RuntimeError):
    pass


def build_user_prompt(metadata: EntityMetadata) -> str:
    return (
        "Entity metadata:\n"
        f"- file: {metadata.file_path}\n"
        f"- kind: {metadata.kind}\n"
        f"- name: {metadata.name}\n"
        f"- exported: {str(metadata.exported).lower()}\n"
        f"- signature: {metadata.signature or 'n/a'}\n\n"
        f"Code snippet:\n\n{metadata.snippet}\n\n"
        "Respond with 3-6 sentences covering purpose, key behavior, dependencies, and likely impact."
    )


class OpenAIExplainer:
    """Implements the ``ExplanationProvider`` protocol on the chat completions API.

    One request per call; retries are the caller's concern.
    """

    prompt_version = PROMPT_VERSION

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.2,
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model_id = model
        self.temperature = temperature
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    async def explain(self, metadata: EntityMetadata) -> str:
        response = await self._client.chat.completions.create(
            model=self.model_id,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": build_user_prompt(metadata)},
            ],
            temperature=self.temperature,
        )
        content = response.choices[0].message.content if response.choices else None
        text = (content or "").strip()
        if not text:
            raise EmptyResponseError("LLM response was empty")
        logger.debug("Explained %s %s (%d chars)", metadata.kind, metadata.name, len(text))
        return text

    async def close(self) -> None:
        await self._client.close()
