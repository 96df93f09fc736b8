from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from langchain_openai import ChatOpenAI

from pm_assistant.config import settings

logger = logging.getLogger(__name__)

MOCK_MODEL = "mock"
MOCK_CONFIDENCE = 0.5
BACKEND_CONFIDENCE = 0.95
DEGRADED_CONFIDENCE = 0.0
DEFAULT_SYSTEM_PROMPT = (
    "You are an AI assistant helping project managers with their projects and tasks. "
    "Provide clear, concise, and helpful responses."
)
DEGRADED_RESPONSE = "I'm sorry, I encountered an error processing your request. Please try again."

MOCK_RESPONSES: list[tuple[tuple[str, ...], str]] = [
    (
        ("task", "todo"),
        "I can help you with task management. Currently, I'm running in mock mode. "
        "When OpenAI is configured, I'll provide detailed insights about your tasks.",
    ),
    (
        ("project", "status"),
        "Based on your project data, I can see you're working on several projects. "
        "Would you like more details about a specific project?",
    ),
    (
        ("risk", "delay"),
        "Risk analysis is a key feature. Once OpenAI is configured, "
        "I'll analyze your projects for potential risks and delays.",
    ),
]
MOCK_DEFAULT_RESPONSE = (
    "I'm here to help you manage your projects. I'm currently running in mock mode. "
    "Please configure OPENAI_API_KEY to enable full AI capabilities."
)


@dataclass
class GenerationOptions:
    model: str = "gpt-4"
    temperature: float = 0.7
    max_tokens: int | None = 1500
    system_instructions: str | None = None
    extra_context: dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerationResult:
    content: str
    token_count: int
    model_id: str
    latency_ms: int
    confidence: float


class Generator(Protocol):
    async def generate(self, user_content: str, options: GenerationOptions) -> GenerationResult: ...


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _render_value(value: Any) -> str:
    if isinstance(value, (list, dict)):
        return json.dumps(value, default=str)
    return str(value)


def build_user_message(user_content: str, extra_context: dict[str, Any] | None) -> str:
    if not extra_context:
        return user_content
    lines = [user_content, "", "Additional Context:"]
    lines.extend(f"{key}: {_render_value(value)}" for key, value in extra_context.items())
    return "\n".join(lines)


def _token_count(response: Any) -> int:
    usage = getattr(response, "usage_metadata", None) or {}
    if usage.get("total_tokens") is not None:
        return int(usage["total_tokens"])
    metadata = getattr(response, "response_metadata", None) or {}
    token_usage = metadata.get("token_usage") or {}
    return int(token_usage.get("total_tokens") or 0)


def mock_response_for(prompt: str) -> str:
    lower = prompt.lower()
    for keywords, response in MOCK_RESPONSES:
        if any(keyword in lower for keyword in keywords):
            return response
    return MOCK_DEFAULT_RESPONSE


class MockGenerator:
    """Deterministic offline stand-in used while no API key is configured."""

    async def generate(self, user_content: str, options: GenerationOptions) -> GenerationResult:
        started = time.perf_counter()
        content = mock_response_for(user_content)
        return GenerationResult(
            content=content,
            token_count=0,
            model_id=MOCK_MODEL,
            latency_ms=_elapsed_ms(started),
            confidence=MOCK_CONFIDENCE,
        )


class OpenAIGenerator:
    def __init__(self, api_key: str, base_url: str, timeout: float | None = None) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    def _get_llm(self, options: GenerationOptions) -> ChatOpenAI:
        return ChatOpenAI(
            model=options.model,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            openai_api_key=self.api_key,
            openai_api_base=self.base_url,
            timeout=self.timeout,
            max_retries=0,
        )

    async def generate(self, user_content: str, options: GenerationOptions) -> GenerationResult:
        started = time.perf_counter()
        system_prompt = options.system_instructions or DEFAULT_SYSTEM_PROMPT
        try:
            llm = self._get_llm(options)
            response = await llm.ainvoke(
                [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": build_user_message(user_content, options.extra_context)},
                ]
            )
            content = response.content
            if not isinstance(content, str):
                raise ValueError(f"Unexpected completion payload: {type(content).__name__}")
            token_count = _token_count(response)
        except Exception as exc:
            logger.warning(
                "Generation backend failed, returning degraded response",
                exc_info=exc,
                extra={"model": options.model},
            )
            return GenerationResult(
                content=DEGRADED_RESPONSE,
                token_count=0,
                model_id=options.model,
                latency_ms=_elapsed_ms(started),
                confidence=DEGRADED_CONFIDENCE,
            )

        return GenerationResult(
            content=content.strip(),
            token_count=token_count,
            model_id=options.model,
            latency_ms=_elapsed_ms(started),
            confidence=BACKEND_CONFIDENCE,
        )


def get_generator() -> Generator:
    if settings.mock_mode:
        return MockGenerator()
    return OpenAIGenerator(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        timeout=settings.generation_timeout_seconds,
    )


def default_options(system_instructions: str | None, extra_context: dict[str, Any] | None = None) -> GenerationOptions:
    return GenerationOptions(
        model=settings.openai_model,
        temperature=settings.openai_temperature,
        max_tokens=settings.openai_max_tokens,
        system_instructions=system_instructions,
        extra_context=dict(extra_context or {}),
    )
