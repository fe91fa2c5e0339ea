"""Sequential application of externally generated habit change plans."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Literal, Optional, Tuple, Union
from uuid import UUID

from habitflow.services.day_schedule import DaySchedule
from habitflow.services.habit_model import Habit, HabitCategory, Weekday, normalize_days, validate_habit
from habitflow.services.habit_store import HabitStore, HabitStoreError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SetName:
    value: str

    def apply(self, habit: Habit) -> Habit:
        return replace(habit, name=self.value)


@dataclass(frozen=True)
class SetCategory:
    value: HabitCategory

    def apply(self, habit: Habit) -> Habit:
        return replace(habit, category=HabitCategory(self.value))


@dataclass(frozen=True)
class SetActiveDays:
    value: Tuple[Weekday, ...]

    def apply(self, habit: Habit) -> Habit:
        return replace(habit, active_days=normalize_days(self.value))


@dataclass(frozen=True)
class SetDefaultTime:
    value: int

    def apply(self, habit: Habit) -> Habit:
        return replace(habit, default_time=self.value)


@dataclass(frozen=True)
class SetDefaultDuration:
    value: int

    def apply(self, habit: Habit) -> Habit:
        return replace(habit, default_duration_minutes=self.value)


@dataclass(frozen=True)
class SetDaySchedule:
    day: Weekday
    value: DaySchedule

    def apply(self, habit: Habit) -> Habit:
        schedule = dict(habit.schedule)
        schedule[Weekday(self.day)] = self.value
        return replace(habit, schedule=schedule)


@dataclass(frozen=True)
class ClearDaySchedule:
    day: Weekday

    def apply(self, habit: Habit) -> Habit:
        schedule = dict(habit.schedule)
        schedule.pop(Weekday(self.day), None)
        return replace(habit, schedule=schedule)


DesignField = Literal["cue", "craving", "response", "reward"]


@dataclass(frozen=True)
class SetDesignField:
    field: DesignField
    value: str

    def apply(self, habit: Habit) -> Habit:
        return replace(habit, **{self.field: self.value})


PatchOp = Union[
    SetName,
    SetCategory,
    SetActiveDays,
    SetDefaultTime,
    SetDefaultDuration,
    SetDaySchedule,
    ClearDaySchedule,
    SetDesignField,
]


@dataclass(frozen=True)
class HabitModification:
    habit_id: UUID
    patches: Tuple[PatchOp, ...]
    rationale: str = ""


@dataclass(frozen=True)
class ChangePlan:
    add: Tuple[Habit, ...] = ()
    modify: Tuple[HabitModification, ...] = ()
    delete: Tuple[UUID, ...] = ()
    summary: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.add or self.modify or self.delete)

    @property
    def step_count(self) -> int:
        return len(self.add) + len(self.modify) + len(self.delete)


StepAction = Literal["add", "modify", "delete"]
StepStatus = Literal["applied", "failed", "skipped"]


@dataclass
class StepOutcome:
    index: int
    action: StepAction
    habit_id: UUID
    status: StepStatus
    error: Optional[str] = None
    rationale: Optional[str] = None


@dataclass
class ApplyResult:
    steps: List[StepOutcome] = field(default_factory=list)

    @property
    def committed(self) -> int:
        return sum(1 for step in self.steps if step.status == "applied")

    @property
    def failed_step(self) -> Optional[StepOutcome]:
        return next((step for step in self.steps if step.status == "failed"), None)

    @property
    def ok(self) -> bool:
        return self.failed_step is None

    def describe(self) -> str:
        failed = self.failed_step
        if failed is None:
            return f"Applied {self.committed} change(s)."
        return (
            f"Step {failed.index + 1} ({failed.action} {failed.habit_id}) failed: {failed.error}. "
            f"{self.committed} earlier change(s) were kept."
        )


def apply_modification(habit: Habit, modification: HabitModification) -> Habit:
    """Patch only the fields named by the modification."""
    for patch in modification.patches:
        habit = patch.apply(habit)
    return validate_habit(habit)


def apply_plan(plan: ChangePlan, store: HabitStore) -> ApplyResult:
    """
    Apply a change plan step by step: additions, then modifications, then deletions.

    Each step is committed on its own. The first failing step stops the run;
    steps already committed are not rolled back and the remaining ones are
    reported as skipped. Conflict detection is not re-run here.
    """
    steps: List[Tuple[StepAction, UUID, object]] = []
    steps.extend(("add", habit.id, habit) for habit in plan.add)
    steps.extend(("modify", mod.habit_id, mod) for mod in plan.modify)
    steps.extend(("delete", habit_id, habit_id) for habit_id in plan.delete)

    result = ApplyResult()
    failed = False
    for index, (action, habit_id, entry) in enumerate(steps):
        rationale = entry.rationale if isinstance(entry, HabitModification) else None
        if failed:
            result.steps.append(StepOutcome(index, action, habit_id, "skipped", rationale=rationale))
            continue
        try:
            if action == "add":
                store.put(validate_habit(entry))
            elif action == "modify":
                store.put(apply_modification(store.get(habit_id), entry))
            else:
                store.delete(habit_id)
        except (HabitStoreError, LookupError, ValueError) as exc:
            failed = True
            logger.warning("Change plan step %s (%s %s) failed: %s", index, action, habit_id, exc)
            result.steps.append(StepOutcome(index, action, habit_id, "failed", error=str(exc), rationale=rationale))
            continue
        result.steps.append(StepOutcome(index, action, habit_id, "applied", rationale=rationale))

    logger.info("Change plan applied: %s/%s step(s) committed", result.committed, len(steps))
    return result
