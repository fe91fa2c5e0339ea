"""Per-weekday time window with pre/core/reward phases."""
from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict

from habitflow.services.time_math import MINUTES_PER_DAY, wrapped_end


class ScheduleField(str, Enum):
    START_TIME = "start_time"
    END_TIME = "end_time"
    TOTAL_DURATION = "total_duration_minutes"
    PRE_DURATION = "pre_duration_minutes"
    CORE_DURATION = "core_duration_minutes"
    REWARD_DURATION = "reward_duration_minutes"


CLOCK_FIELDS = {ScheduleField.START_TIME, ScheduleField.END_TIME}
DURATION_FIELDS = {
    ScheduleField.TOTAL_DURATION,
    ScheduleField.PRE_DURATION,
    ScheduleField.CORE_DURATION,
    ScheduleField.REWARD_DURATION,
}


@dataclass(frozen=True)
class DaySchedule:
    """
    Time window for one active weekday of a habit.

    ``start_time`` and ``end_time`` are minutes since midnight. An ``end_time``
    lower than ``start_time`` is an overnight window. The window is split into
    three consecutive phases: pre (ramp-in), core and reward.
    """

    start_time: int
    end_time: int
    total_duration_minutes: int
    pre_duration_minutes: int = 0
    core_duration_minutes: int = 1
    reward_duration_minutes: int = 0

    @classmethod
    def build(cls, start_time: int, *, pre: int = 0, core: int = 30, reward: int = 0) -> "DaySchedule":
        """Construct a consistent window from a start time and phase lengths."""
        _check_clock(start_time)
        for value in (pre, core, reward):
            _check_duration(value)
        core = max(1, core)
        total = pre + core + reward
        return cls(
            start_time=start_time,
            end_time=(start_time + total) % MINUTES_PER_DAY,
            total_duration_minutes=total,
            pre_duration_minutes=pre,
            core_duration_minutes=core,
            reward_duration_minutes=reward,
        )

    @property
    def phase_minutes(self) -> int:
        return self.pre_duration_minutes + self.core_duration_minutes + self.reward_duration_minutes

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DaySchedule":
        return cls(
            start_time=int(data["start_time"]),
            end_time=int(data["end_time"]),
            total_duration_minutes=int(data["total_duration_minutes"]),
            pre_duration_minutes=int(data.get("pre_duration_minutes", 0)),
            core_duration_minutes=int(data.get("core_duration_minutes", 1)),
            reward_duration_minutes=int(data.get("reward_duration_minutes", 0)),
        )


def update_field(schedule: DaySchedule, field: ScheduleField | str, value: int) -> DaySchedule:
    """
    Apply a single-field edit and re-derive the dependent fields.

    The last-edited field wins:

    - ``start_time`` moves the whole window, keeping its total length;
    - ``end_time`` stretches or shrinks the window;
    - ``total_duration_minutes`` and ``core_duration_minutes`` move ``end_time``;
    - every edit recomputes ``core = max(1, total - pre - reward)``.
    """
    field = ScheduleField(field)
    value = int(value)
    if field in CLOCK_FIELDS:
        _check_clock(value)
    else:
        _check_duration(value)

    updated = replace(schedule, **{field.value: value})

    if field is ScheduleField.START_TIME:
        end_time = (updated.start_time + updated.total_duration_minutes) % MINUTES_PER_DAY
        updated = replace(updated, end_time=end_time)
    if field in CLOCK_FIELDS:
        total = max(1, wrapped_end(updated.start_time, updated.end_time) - updated.start_time)
        updated = replace(updated, total_duration_minutes=total)

    if field is ScheduleField.CORE_DURATION:
        total = updated.pre_duration_minutes + max(1, updated.core_duration_minutes) + updated.reward_duration_minutes
        updated = replace(updated, total_duration_minutes=total)
    if field in (ScheduleField.TOTAL_DURATION, ScheduleField.CORE_DURATION):
        total = max(1, updated.total_duration_minutes)
        updated = replace(
            updated,
            total_duration_minutes=total,
            end_time=(updated.start_time + total) % MINUTES_PER_DAY,
        )

    core = max(
        1,
        updated.total_duration_minutes - updated.pre_duration_minutes - updated.reward_duration_minutes,
    )
    return replace(updated, core_duration_minutes=core)


def _check_clock(value: int) -> None:
    if not 0 <= value < MINUTES_PER_DAY:
        raise ValueError(f"Clock value {value} is outside 0..{MINUTES_PER_DAY - 1}")


def _check_duration(value: int) -> None:
    if value < 0:
        raise ValueError(f"Duration {value} must be >= 0")
