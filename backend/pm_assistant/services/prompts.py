from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from pm_assistant.config import Settings
from pm_assistant.db import models
from pm_assistant.services.context_builder import ContextBundle

ROLE_PROMPT = "You are an AI assistant helping project managers with their projects and tasks."
CLOSING_PROMPT = "Provide clear, concise, and actionable responses based on the project data provided."
QUESTION_LABEL = "User Question:"
ELLIPSIS = "..."


@dataclass(frozen=True)
class PromptLimits:
    max_projects: int = 10
    max_tasks: int = 20
    max_history: int = 3
    history_answer_chars: int = 200

    @classmethod
    def from_settings(cls, settings: Settings) -> PromptLimits:
        return cls(
            max_projects=settings.prompt_max_projects,
            max_tasks=settings.prompt_max_tasks,
            max_history=settings.prompt_max_history,
            history_answer_chars=settings.prompt_history_answer_chars,
        )


@dataclass(frozen=True)
class PromptRequest:
    system_instructions: str
    user_content: str


def build_system_prompt(profile: models.StyleProfile) -> str:
    parts = [ROLE_PROMPT, f"Your communication style should be {profile.tone.lower()}."]
    if profile.prefer_bullets:
        parts.append("Prefer bullet points in your responses.")
    if profile.include_risks_by_default:
        parts.append("Always include potential risks or concerns when relevant.")
    parts.append(CLOSING_PROMPT)
    return " ".join(parts)


def _truncate(text: str | None, limit: int) -> str:
    text = text or ""
    if len(text) <= limit:
        return text
    return text[:limit] + ELLIPSIS


def _project_section(projects: Sequence[models.Project], limit: int) -> list[str]:
    if not projects:
        return []
    lines = ["Projects:"]
    lines.extend(f"- {p.name} (Status: {p.status})" for p in projects[:limit])
    return lines


def _task_section(tasks: Sequence[models.Task], limit: int) -> list[str]:
    if not tasks:
        return []
    lines = ["Tasks:"]
    lines.extend(f"- {t.title} (Status: {t.status}, Priority: {t.priority})" for t in tasks[:limit])
    return lines


def _conversation_section(
    parent: models.ChatSession | None,
    history: Sequence[models.ChatSession],
    include_history: bool,
    limits: PromptLimits,
) -> list[str]:
    if parent is not None:
        return [
            f"Previous question: {parent.question}",
            f"Previous response: {parent.response or ''}",
        ]
    if not include_history or not history:
        return []
    lines = ["Recent conversation history:"]
    for past in history[: limits.max_history]:
        lines.append(f"Q: {past.question}")
        lines.append(f"A: {_truncate(past.response, limits.history_answer_chars)}")
    return lines


def assemble_prompt(
    question: str,
    bundle: ContextBundle,
    profile: models.StyleProfile,
    include_history: bool,
    parent: models.ChatSession | None = None,
    history: Sequence[models.ChatSession] = (),
    limits: PromptLimits = PromptLimits(),
) -> PromptRequest:
    """Render the bounded view of ``bundle`` sent to the model.

    ``parent`` must already be ownership-checked by the caller. ``history`` is
    expected newest first. Oversized sections are cut to ``limits``; a section
    is omitted only when its source list is empty.
    """
    sections = [
        _project_section(bundle.projects, limits.max_projects),
        _task_section(bundle.tasks, limits.max_tasks),
        _conversation_section(parent, history, include_history, limits),
        [f"{QUESTION_LABEL} {question}"],
    ]
    user_content = "\n\n".join("\n".join(lines) for lines in sections if lines)
    return PromptRequest(system_instructions=build_system_prompt(profile), user_content=user_content)
