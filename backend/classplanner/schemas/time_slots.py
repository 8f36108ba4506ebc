from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from classplanner.core.config import WEEK_DAYS

DAY_VALUES = set(WEEK_DAYS)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

ClassTypeConstraint = Literal["theory", "lab"]


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(value: int) -> str:
    hours = value // 60
    minutes = value % 60
    return f"{hours:02d}:{minutes:02d}"


class TimeBlockIn(BaseModel):
    startTime: str
    endTime: str

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value


class DaySlotConfig(BaseModel):
    blocks: list[TimeBlockIn] = Field(default_factory=list, max_length=24)
    classTypeConstraint: ClassTypeConstraint | None = None


class ShiftTimeConfig(BaseModel):
    defaultBlocks: list[TimeBlockIn] = Field(default_factory=list, max_length=24)
    dayOverrides: dict[str, DaySlotConfig] = Field(default_factory=dict)

    @field_validator("dayOverrides")
    @classmethod
    def validate_override_days(cls, value: dict[str, DaySlotConfig]) -> dict[str, DaySlotConfig]:
        invalid = [day for day in value if day not in DAY_VALUES]
        if invalid:
            raise ValueError(f"Invalid override day(s): {', '.join(sorted(invalid))}")
        return value


class CustomTimeSlots(BaseModel):
    day: ShiftTimeConfig | None = None
    evening: ShiftTimeConfig | None = None


DEFAULT_SHIFT_TIME_SLOTS = CustomTimeSlots(
    day=ShiftTimeConfig(
        defaultBlocks=[
            TimeBlockIn(startTime="08:30", endTime="13:00"),
            TimeBlockIn(startTime="14:00", endTime="17:00"),
        ],
    ),
    evening=ShiftTimeConfig(
        defaultBlocks=[TimeBlockIn(startTime="18:00", endTime="21:40")],
    ),
)
