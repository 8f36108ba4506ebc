from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from classplanner.core.config import WEEK_DAYS
from classplanner.core.exceptions import ConfigError
from classplanner.schemas.time_slots import (
    DEFAULT_SHIFT_TIME_SLOTS,
    CustomTimeSlots,
    ShiftTimeConfig,
    TimeBlockIn,
    minutes_to_time,
    parse_time_to_minutes,
)

SHIFTS = ("day", "evening")


def constraint_family(class_type: str) -> str:
    """Projects are scheduled under the same day rules as labs."""
    return "theory" if class_type == "theory" else "lab"


@dataclass(frozen=True, order=True)
class TimeBlock:
    start: int
    end: int

    @property
    def minutes(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "TimeBlock") -> bool:
        return self.start < other.end and other.start < self.end

    def slices(self, duration: int) -> list["TimeBlock"]:
        """Back-to-back sub-intervals of `duration`, starting at the block's start."""
        if duration <= 0:
            return []
        result: list[TimeBlock] = []
        cursor = self.start
        while cursor + duration <= self.end:
            result.append(TimeBlock(cursor, cursor + duration))
            cursor += duration
        return result

    @property
    def label(self) -> str:
        return f"{minutes_to_time(self.start)}-{minutes_to_time(self.end)}"


@dataclass(frozen=True)
class DayOverride:
    blocks: tuple[TimeBlock, ...]
    class_type_constraint: str | None = None


@dataclass(frozen=True)
class ShiftGrammar:
    shift: str
    default_blocks: tuple[TimeBlock, ...]
    day_overrides: dict[str, DayOverride] = field(default_factory=dict)


def _build_blocks(raw_blocks: Iterable[TimeBlockIn], *, shift: str, day: str | None) -> tuple[TimeBlock, ...]:
    where = f"{shift} shift" if day is None else f"{shift} shift, {day}"
    blocks: list[TimeBlock] = []
    for raw in raw_blocks:
        try:
            start = parse_time_to_minutes(raw.startTime)
            end = parse_time_to_minutes(raw.endTime)
        except ValueError as exc:
            raise ConfigError(
                f"Malformed time block in {where}: {exc}",
                details={"shift": shift, "day": day},
            ) from exc
        if end <= start:
            raise ConfigError(
                f"Time block {raw.startTime}-{raw.endTime} in {where} must end after it starts",
                details={"shift": shift, "day": day, "block": f"{raw.startTime}-{raw.endTime}"},
            )
        blocks.append(TimeBlock(start, end))

    blocks.sort()
    for previous, current in zip(blocks, blocks[1:]):
        if previous.overlaps(current):
            raise ConfigError(
                f"Time blocks {previous.label} and {current.label} overlap in {where}",
                details={"shift": shift, "day": day, "blocks": [previous.label, current.label]},
            )
    return tuple(blocks)


def build_shift_grammar(shift: str, config: ShiftTimeConfig) -> ShiftGrammar:
    default_blocks = _build_blocks(config.defaultBlocks, shift=shift, day=None)
    overrides: dict[str, DayOverride] = {}
    for day, override in config.dayOverrides.items():
        if day not in WEEK_DAYS:
            raise ConfigError(f"Unknown day '{day}' in {shift} shift overrides", details={"shift": shift, "day": day})
        overrides[day] = DayOverride(
            blocks=_build_blocks(override.blocks, shift=shift, day=day),
            class_type_constraint=override.classTypeConstraint,
        )
    return ShiftGrammar(shift=shift, default_blocks=default_blocks, day_overrides=overrides)


class TimeGrammar:
    """Per-shift weekly availability: default blocks plus optional per-day overrides."""

    def __init__(self, shifts: dict[str, ShiftGrammar]) -> None:
        self.shifts = shifts

    @classmethod
    def from_config(cls, custom: CustomTimeSlots | None) -> "TimeGrammar":
        shifts: dict[str, ShiftGrammar] = {}
        for shift in SHIFTS:
            config = getattr(custom, shift, None) if custom is not None else None
            if config is None:
                config = getattr(DEFAULT_SHIFT_TIME_SLOTS, shift)
            shifts[shift] = build_shift_grammar(shift, config)
        return cls(shifts)

    def effective_blocks(self, shift: str, day: str) -> tuple[tuple[TimeBlock, ...], str | None]:
        grammar = self.shifts.get(shift)
        if grammar is None:
            return (), None
        override = grammar.day_overrides.get(day)
        if override is not None:
            return override.blocks, override.class_type_constraint
        return grammar.default_blocks, None

    def allows(self, shift: str, day: str, class_type: str) -> bool:
        _, constraint = self.effective_blocks(shift, day)
        return constraint is None or constraint == constraint_family(class_type)


def working_days(off_days: Iterable[str]) -> list[str]:
    excluded = set(off_days)
    return [day for day in WEEK_DAYS if day not in excluded]


def day_index(day: str) -> int:
    try:
        return WEEK_DAYS.index(day)
    except ValueError:
        return len(WEEK_DAYS)
