"""
Best-effort AI artifacts for a user's tasks: tags, insights and reports.

Every operation makes at most one call to the hosted model and never raises
to its caller. When the call fails or its output cannot be used, a fallback
computed locally from the tasks is returned instead.
"""
import json
import logging
import re
from datetime import date
from typing import Optional, Type, TypeVar

import anthropic
from pydantic import BaseModel, ValidationError

import config
from models import (
    ExecutiveSummary,
    Task,
    TaskGroup,
    TaskInsights,
    TaskReport,
    UserPublic,
)
from prompts import (
    TAGS_SYSTEM_PROMPT,
    TAGS_USER_PROMPT,
    INSIGHTS_SYSTEM_PROMPT,
    INSIGHTS_USER_PROMPT,
    REPORT_SYSTEM_PROMPT,
    REPORT_USER_PROMPT,
)

logger = logging.getLogger(__name__)

MAX_TAGS = 3
DEFAULT_TAG = "task"

ModelT = TypeVar("ModelT", bound=BaseModel)

# Tried in order; the first candidate that decodes to a JSON object wins
_JSON_PATTERNS = (
    re.compile(r"```json\n(.*?)\n```", re.DOTALL),  # fenced code block
    re.compile(r"`(.*?)`", re.DOTALL),  # inline code span
    re.compile(r"\{.*\}", re.DOTALL),  # bare braces
)


class AIResponseError(Exception):
    """The model answered, but not with anything usable."""


def extract_json(text: str) -> dict:
    """
    Scrape a JSON object out of free-form model output.

    This is pattern matching, not parsing: a fenced ```json block is preferred,
    then an inline code span, then everything between the outermost braces.
    Raises AIResponseError if no candidate decodes to an object.
    """
    for pattern in _JSON_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        candidate = match.group(1) if match.groups() else match.group(0)
        try:
            parsed = json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise AIResponseError("No JSON object found in response")


def parse_tags(text: str) -> list[str]:
    """Split a comma-separated tag answer into at most MAX_TAGS clean tags."""
    tags = [tag.strip() for tag in text.split(",")]
    tags = [tag for tag in tags if tag and "\n" not in tag]
    return tags[:MAX_TAGS] or [DEFAULT_TAG]


def completion_percent(tasks: list[Task]) -> int:
    """Completed share of tasks as a whole percentage, rounded half up."""
    if not tasks:
        return 0
    completed = sum(1 for task in tasks if task.completed)
    return (200 * completed + len(tasks)) // (2 * len(tasks))


# Fallbacks
def empty_insights() -> TaskInsights:
    return TaskInsights(
        task_groups=[],
        recommendations=["Start by adding some tasks to get AI-powered insights"],
        completion_rate="0%",
    )


def fallback_insights(tasks: list[Task]) -> TaskInsights:
    return TaskInsights(
        task_groups=[TaskGroup(name="All Tasks", tasks=[task.title for task in tasks])],
        recommendations=[
            "Focus on completing high-priority tasks first",
            "Review and update task priorities regularly",
        ],
        completion_rate=f"{completion_percent(tasks)}%",
    )


def fallback_report(tasks: list[Task]) -> TaskReport:
    rate = completion_percent(tasks)
    completed = sum(1 for task in tasks if task.completed)
    high_priority = sum(1 for task in tasks if task.priority == "high")
    return TaskReport(
        executive_summary=ExecutiveSummary(
            summary="Task Management Overview (Generated from fallback)",
            metrics=[
                f"Total Tasks: {len(tasks)}",
                f"Completed Tasks: {completed}",
                f"Completion Rate: {rate}%",
                f"High Priority Tasks: {high_priority}",
            ],
        ),
        task_analysis="A detailed task analysis could not be generated at this time. Please try again later.",
        productivity_metrics=f"Current completion rate is {rate}%. Task metrics are being calculated.",
        work_style_analysis="Work style analysis is temporarily unavailable. Please try again later.",
        recommendations=[
            "Consider reviewing and updating task priorities",
            "Regular task list maintenance is recommended",
            "Set realistic deadlines for better task management",
        ],
    )


def _tasks_payload(tasks: list[Task]) -> str:
    return json.dumps([task.model_dump(exclude={"user_id"}) for task in tasks])


class TaskAI:
    """Wrapper around one hosted model. Construct once and inject where needed."""

    def __init__(self, client: anthropic.AsyncAnthropic, model: str, max_tokens: int = 1024):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def _complete(self, system: str, prompt: str) -> str:
        """Send one prompt and return the text of the reply."""
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            raise AIResponseError("Empty response from model")
        return text

    async def _request_json(self, kind: str, system: str, prompt: str, model_cls: Type[ModelT]) -> Optional[ModelT]:
        """Call the model and validate its JSON answer; None means use the fallback."""
        try:
            text = await self._complete(system, prompt)
        except anthropic.APIError as e:
            logger.error("AI call failed (%s): %s", kind, e)
            return None
        except AIResponseError as e:
            logger.warning("AI response unusable (%s): %s", kind, e)
            return None

        logger.debug("Raw %s response: %s", kind, text)
        try:
            return model_cls.model_validate(extract_json(text))
        except (AIResponseError, ValidationError) as e:
            logger.warning("AI response unusable (%s): %s", kind, e)
            return None

    async def generate_task_tags(self, title: str, description: Optional[str] = None) -> list[str]:
        prompt = TAGS_USER_PROMPT.format(title=title, description=description or "")
        try:
            text = await self._complete(TAGS_SYSTEM_PROMPT, prompt)
        except anthropic.APIError as e:
            logger.error("AI call failed (tags): %s", e)
            return [DEFAULT_TAG]
        except AIResponseError as e:
            logger.warning("AI response unusable (tags): %s", e)
            return [DEFAULT_TAG]

        logger.debug("Raw tags response: %s", text)
        return parse_tags(text)

    async def generate_task_insights(self, tasks: list[Task]) -> TaskInsights:
        if not tasks:
            return empty_insights()

        prompt = INSIGHTS_USER_PROMPT.format(tasks=_tasks_payload(tasks))
        insights = await self._request_json("insights", INSIGHTS_SYSTEM_PROMPT, prompt, TaskInsights)
        return insights or fallback_insights(tasks)

    async def generate_report(self, tasks: list[Task], insights: TaskInsights, user: UserPublic) -> TaskReport:
        if not tasks:
            return fallback_report(tasks)

        prompt = REPORT_USER_PROMPT.format(
            user=user.model_dump_json(),
            tasks=_tasks_payload(tasks),
            insights=insights.model_dump_json(),
            today=date.today().isoformat(),
        )
        report = await self._request_json("report", REPORT_SYSTEM_PROMPT, prompt, TaskReport)
        return report or fallback_report(tasks)


def create_task_ai() -> TaskAI:
    """Build the service from configuration. Fails if no API key is set."""
    client = anthropic.AsyncAnthropic(api_key=config.require_api_key())
    return TaskAI(client, model=config.AI_MODEL, max_tokens=config.AI_MAX_TOKENS)
