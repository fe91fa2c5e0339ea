"""LLM-backed generation of habit change plans from a free-text intent."""
from __future__ import annotations

import json
import logging
from time import perf_counter
from typing import Any, Dict, Iterable, List, Optional

import openai
from pydantic import ValidationError

from habitflow.api.schemas.change_plan import ChangePlanPayload
from habitflow.core.config import settings
from habitflow.observability.metrics import log_metric
from habitflow.observability.tracing import trace
from habitflow.services.habit_model import WEEK, Habit, HabitCategory
from habitflow.services.time_math import to_clock

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a careful habit-planning assistant. You turn one request into a minimal "
    "set of changes to the user's existing habits. Only touch habits the request is about. "
    "Refer to existing habits by their exact id. Times are 24h HH:MM strings. "
    "Weekdays are Mon, Tue, Wed, Thu, Fri, Sat, Sun. Respond with JSON only."
)

PATCH_GUIDE = (
    "Each entry of modify[].patches is one of:\n"
    '- {"field": "name", "value": "<text>"}\n'
    '- {"field": "category", "value": "<category>"}\n'
    '- {"field": "active_days", "value": ["Mon", ...]}\n'
    '- {"field": "default_time", "value": "HH:MM"}\n'
    '- {"field": "default_duration_minutes", "value": <int >= 1>}\n'
    '- {"field": "day_schedule", "day": "<weekday>", "value": {"start_time": "HH:MM", '
    '"pre_duration_minutes": 0, "core_duration_minutes": 30, "reward_duration_minutes": 0}}\n'
    '- {"field": "clear_day_schedule", "day": "<weekday>"}\n'
    '- {"field": "cue" | "craving" | "response" | "reward", "value": "<text>"}'
)


class PlanGenerationError(RuntimeError):
    """Raised when a change plan could not be produced."""


def generate_change_plan(
    intent: str,
    habits: Iterable[Habit],
    *,
    client: Any = None,
    request_id: str | None = None,
) -> ChangePlanPayload:
    """
    Ask the model for a structured change plan for ``intent``.

    The response is validated against ``ChangePlanPayload`` and must convert to
    a domain plan; any failure raises ``PlanGenerationError``. There is no retry
    and no fallback plan.
    """
    if not intent or not intent.strip():
        raise PlanGenerationError("Intent is empty")

    if client is None:
        api_key = settings.openai_api_key
        if not api_key:
            raise PlanGenerationError("OPENAI_API_KEY is not configured")
        client = openai.OpenAI(api_key=api_key, timeout=settings.openai_timeout_seconds)

    active = [habit for habit in habits if not habit.archived]
    user_prompt = _build_user_prompt(intent.strip(), active)
    metadata = {"habit_count": len(active), "model": settings.openai_model, "request_id": request_id}

    start = perf_counter()
    try:
        with trace("change_plan.generate", metadata=metadata, request_id=request_id):
            completion = client.chat.completions.create(
                model=settings.openai_model,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_prompt},
                ],
            )
    except openai.OpenAIError as exc:
        log_metric("change_plan.generate.failure", 1, metadata={"reason": "transport"})
        raise PlanGenerationError(f"Plan generation request failed: {exc}") from exc

    content = completion.choices[0].message.content if completion.choices else None
    if not content:
        log_metric("change_plan.generate.failure", 1, metadata={"reason": "empty"})
        raise PlanGenerationError("Plan generator returned no content")

    try:
        plan = ChangePlanPayload.model_validate_json(content)
        plan.to_domain()
    except (ValidationError, ValueError) as exc:
        logger.warning("Discarding malformed change plan: %s", exc)
        log_metric("change_plan.generate.failure", 1, metadata={"reason": "shape"})
        raise PlanGenerationError("Plan generator returned an invalid plan") from exc

    log_metric("change_plan.generate.success", 1, metadata={"steps": len(plan.add) + len(plan.modify) + len(plan.delete)})
    log_metric("change_plan.generate.latency_ms", (perf_counter() - start) * 1000)
    return plan


def _build_user_prompt(intent: str, habits: List[Habit]) -> str:
    schema_json = json.dumps(ChangePlanPayload.model_json_schema(), indent=2)
    habits_json = json.dumps([_habit_summary(habit) for habit in habits], indent=2)
    categories = ", ".join(category.value for category in HabitCategory)
    return (
        f"Request:\n{intent}\n\n"
        f"Current habits:\n{habits_json}\n\n"
        f"Allowed categories: {categories}\n\n"
        f"{PATCH_GUIDE}\n\n"
        "Use add for new habits, modify for changes to existing ones and delete for removals. "
        "Put a one-sentence explanation in summary.\n"
        "Return strictly valid JSON matching this schema:\n"
        f"{schema_json}"
    )


def _habit_summary(habit: Habit) -> Dict[str, Any]:
    schedule: Dict[str, Optional[str]] = {}
    for day in WEEK:
        if not habit.is_active_on(day):
            continue
        window = habit.window_for(day)
        schedule[day.value] = (
            f"{to_clock(window.start_time)}-{to_clock(window.start_time + window.phase_minutes)}" if window else None
        )
    return {
        "id": str(habit.id),
        "name": habit.name,
        "category": habit.category.value,
        "active_days": [day.value for day in habit.active_days],
        "schedule": schedule,
        "cue": habit.cue,
        "reward": habit.reward,
    }
