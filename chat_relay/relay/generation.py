"""Generation invoker — ABC, Bedrock and OpenAI implementations, and mocks."""

from __future__ import annotations

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any

from chat_relay.relay.errors import GenerationError
from chat_relay.relay.models import GenerationResult

logger = logging.getLogger(__name__)


class GenerationInvoker(ABC):
    """Abstract retrieval-augmented generation backend.

    ``invoke`` is a single blocking round trip: implementations must not
    retry on their own. When *prior_session_id* is given the backend
    resumes that conversation; the returned session id may differ from it.
    """

    @abstractmethod
    async def invoke(self, prompt: str, prior_session_id: str | None = None) -> GenerationResult: ...


# ---------------------------------------------------------------------------
# Bedrock knowledge-base implementation
# ---------------------------------------------------------------------------

def bedrock_model_arn(model_identifier: str, region: str) -> str:
    """Expand a bare foundation-model id into its ARN; pass ARNs through."""
    if model_identifier.startswith("arn:"):
        return model_identifier
    return f"arn:aws:bedrock:{region}::foundation-model/{model_identifier}"


class BedrockGenerationInvoker(GenerationInvoker):
    def __init__(
        self,
        knowledge_base_id: str,
        model_identifier: str,
        region: str = "us-east-1",
        client: Any = None,
    ) -> None:
        if client is None:
            # Late import so the rest of the package works without boto3 installed
            import boto3
            from botocore.config import Config

            client = boto3.client(
                "bedrock-agent-runtime",
                region_name=region,
                config=Config(retries={"total_max_attempts": 1}),
            )
        self._client = client
        self._kb_id = knowledge_base_id
        self._model_arn = bedrock_model_arn(model_identifier, region)

    async def invoke(self, prompt: str, prior_session_id: str | None = None) -> GenerationResult:
        from botocore.exceptions import BotoCoreError, ClientError

        kwargs: dict[str, Any] = {
            "input": {"text": prompt},
            "retrieveAndGenerateConfiguration": {
                "type": "KNOWLEDGE_BASE",
                "knowledgeBaseConfiguration": {
                    "knowledgeBaseId": self._kb_id,
                    "modelArn": self._model_arn,
                },
            },
        }
        if prior_session_id:
            kwargs["sessionId"] = prior_session_id

        try:
            response = await asyncio.to_thread(self._client.retrieve_and_generate, **kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise GenerationError(f"bedrock call failed: {exc}") from exc

        try:
            return GenerationResult(answer=response["output"]["text"], session_id=response["sessionId"])
        except (KeyError, TypeError) as exc:
            raise GenerationError(f"bedrock response missing {exc}") from exc


# ---------------------------------------------------------------------------
# OpenAI Responses implementation
# ---------------------------------------------------------------------------

class OpenAIGenerationInvoker(GenerationInvoker):
    """Responses API with ``file_search`` over a vector store.

    The response id doubles as the downstream session id and is resumed
    through ``previous_response_id``.
    """

    def __init__(
        self,
        knowledge_base_id: str,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        client: Any = None,
    ) -> None:
        if client is None:
            # Late import so the rest of the package works without openai installed
            from openai import AsyncOpenAI

            client = AsyncOpenAI(api_key=api_key, max_retries=0)
        self._client = client
        self._kb_id = knowledge_base_id
        self._model = model

    async def invoke(self, prompt: str, prior_session_id: str | None = None) -> GenerationResult:
        from openai import OpenAIError

        kwargs: dict[str, Any] = {"model": self._model, "input": prompt}
        if self._kb_id:
            kwargs["tools"] = [{"type": "file_search", "vector_store_ids": [self._kb_id]}]
        if prior_session_id:
            kwargs["previous_response_id"] = prior_session_id

        try:
            response = await self._client.responses.create(**kwargs)
        except OpenAIError as exc:
            raise GenerationError(f"openai call failed: {exc}") from exc

        return GenerationResult(answer=response.output_text or "", session_id=response.id)


# ---------------------------------------------------------------------------
# Test mock: scripted results, records every call
# ---------------------------------------------------------------------------

class MockGenerationInvoker(GenerationInvoker):
    """Returns (or raises) pre-configured outcomes in order. Used in unit tests."""

    def __init__(self, outcomes: list[GenerationResult | Exception]) -> None:
        self._outcomes = list(outcomes)
        self.calls: list[tuple[str, str | None]] = []

    async def invoke(self, prompt: str, prior_session_id: str | None = None) -> GenerationResult:
        self.calls.append((prompt, prior_session_id))
        if len(self.calls) > len(self._outcomes):
            raise GenerationError("mock outcomes exhausted")
        outcome = self._outcomes[len(self.calls) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def call_count(self) -> int:
        return len(self.calls)


# ---------------------------------------------------------------------------
# Demo: runs without any backend
# ---------------------------------------------------------------------------

class DemoGenerationInvoker(GenerationInvoker):
    """Echoes the prompt and keeps the session id stable across turns."""

    async def invoke(self, prompt: str, prior_session_id: str | None = None) -> GenerationResult:
        session_id = prior_session_id or f"demo-{uuid.uuid4()}"
        return GenerationResult(
            answer=f"This is a demo answer to: {prompt}. Set GENERATION_BACKEND for real output.",
            session_id=session_id,
        )
