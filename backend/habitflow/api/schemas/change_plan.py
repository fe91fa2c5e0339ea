"""Schemas for generated and applied habit change plans."""
from __future__ import annotations

from typing import Annotated, List, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from habitflow.api.schemas.habit import ClockTime, DaySchedulePayload, HabitFields
from habitflow.services.habit_model import HabitCategory, Weekday
from habitflow.services.plan_applier import (
    ApplyResult,
    ChangePlan,
    ClearDaySchedule,
    HabitModification,
    PatchOp,
    SetActiveDays,
    SetCategory,
    SetDaySchedule,
    SetDefaultDuration,
    SetDefaultTime,
    SetDesignField,
    SetName,
    StepOutcome,
)
from habitflow.services.time_math import parse_clock


class NamePatch(BaseModel):
    field: Literal["name"]
    value: str = Field(min_length=1, max_length=200)

    def to_domain(self) -> PatchOp:
        return SetName(self.value)


class CategoryPatch(BaseModel):
    field: Literal["category"]
    value: HabitCategory

    def to_domain(self) -> PatchOp:
        return SetCategory(self.value)


class ActiveDaysPatch(BaseModel):
    field: Literal["active_days"]
    value: List[Weekday] = Field(min_length=1)

    def to_domain(self) -> PatchOp:
        return SetActiveDays(tuple(self.value))


class DefaultTimePatch(BaseModel):
    field: Literal["default_time"]
    value: ClockTime

    def to_domain(self) -> PatchOp:
        return SetDefaultTime(parse_clock(self.value))


class DefaultDurationPatch(BaseModel):
    field: Literal["default_duration_minutes"]
    value: int = Field(ge=1)

    def to_domain(self) -> PatchOp:
        return SetDefaultDuration(self.value)


class DaySchedulePatch(BaseModel):
    field: Literal["day_schedule"]
    day: Weekday
    value: DaySchedulePayload

    def to_domain(self) -> PatchOp:
        return SetDaySchedule(self.day, self.value.to_domain())


class ClearDaySchedulePatch(BaseModel):
    field: Literal["clear_day_schedule"]
    day: Weekday

    def to_domain(self) -> PatchOp:
        return ClearDaySchedule(self.day)


class DesignFieldPatch(BaseModel):
    field: Literal["cue", "craving", "response", "reward"]
    value: str = Field(max_length=500)

    def to_domain(self) -> PatchOp:
        return SetDesignField(self.field, self.value)


HabitPatchPayload = Annotated[
    Union[
        NamePatch,
        CategoryPatch,
        ActiveDaysPatch,
        DefaultTimePatch,
        DefaultDurationPatch,
        DaySchedulePatch,
        ClearDaySchedulePatch,
        DesignFieldPatch,
    ],
    Field(discriminator="field"),
]


class HabitModificationPayload(BaseModel):
    habit_id: UUID
    patches: List[HabitPatchPayload] = Field(min_length=1)
    rationale: str = ""

    def to_domain(self) -> HabitModification:
        return HabitModification(
            habit_id=self.habit_id,
            patches=tuple(patch.to_domain() for patch in self.patches),
            rationale=self.rationale,
        )


class ChangePlanPayload(BaseModel):
    """Structured change plan; also the JSON shape requested from the generator."""

    add: List[HabitFields] = Field(default_factory=list)
    modify: List[HabitModificationPayload] = Field(default_factory=list)
    delete: List[UUID] = Field(default_factory=list)
    summary: str = ""

    def to_domain(self) -> ChangePlan:
        return ChangePlan(
            add=tuple(habit.to_habit() for habit in self.add),
            modify=tuple(mod.to_domain() for mod in self.modify),
            delete=tuple(self.delete),
            summary=self.summary,
        )


class GeneratePlanRequest(BaseModel):
    user_id: UUID
    intent: str = Field(min_length=1, max_length=2000)


class GeneratePlanResponse(BaseModel):
    user_id: UUID
    plan: ChangePlanPayload
    request_id: str


class ApplyPlanRequest(BaseModel):
    user_id: UUID
    plan: ChangePlanPayload


class StepOutcomePayload(BaseModel):
    index: int
    action: Literal["add", "modify", "delete"]
    habit_id: UUID
    status: Literal["applied", "failed", "skipped"]
    error: Optional[str] = None
    rationale: Optional[str] = None

    @classmethod
    def from_domain(cls, step: StepOutcome) -> "StepOutcomePayload":
        return cls(
            index=step.index,
            action=step.action,
            habit_id=step.habit_id,
            status=step.status,
            error=step.error,
            rationale=step.rationale,
        )


class ApplyPlanResponse(BaseModel):
    user_id: UUID
    ok: bool
    committed: int
    failed_step: Optional[int] = None
    message: str
    steps: List[StepOutcomePayload]
    request_id: str

    @classmethod
    def from_result(cls, user_id: UUID, result: ApplyResult, request_id: str) -> "ApplyPlanResponse":
        failed = result.failed_step
        return cls(
            user_id=user_id,
            ok=result.ok,
            committed=result.committed,
            failed_step=failed.index if failed is not None else None,
            message=result.describe(),
            steps=[StepOutcomePayload.from_domain(step) for step in result.steps],
            request_id=request_id,
        )
