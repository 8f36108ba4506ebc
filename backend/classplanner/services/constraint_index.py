from __future__ import annotations

from bisect import bisect_left, insort
from collections import defaultdict
from typing import Literal

ResourceKind = Literal["teacher", "room", "batch"]

RESOURCE_KINDS: tuple[ResourceKind, ...] = ("teacher", "room", "batch")


class ReservationConflict(ValueError):
    pass


class ConstraintIndex:
    """Occupied [start, end) minute intervals per (kind, resource id, day).

    Owned by a single generation run. Intervals stored under one key never
    overlap; `reserve` refuses anything that would break that.
    """

    def __init__(self) -> None:
        self._occupied: dict[tuple[str, str, str], list[tuple[int, int]]] = defaultdict(list)

    def _intervals(self, kind: ResourceKind, resource_id: str, day: str) -> list[tuple[int, int]]:
        return self._occupied.get((kind, resource_id, day), [])

    def is_free(self, kind: ResourceKind, resource_id: str | None, day: str, start: int, end: int) -> bool:
        if resource_id is None:
            return True
        intervals = self._intervals(kind, resource_id, day)
        if not intervals:
            return True
        # Sorted and pairwise disjoint, so only the neighbours of the insertion point can overlap.
        position = bisect_left(intervals, (start, end))
        for neighbour in intervals[max(0, position - 1) : position + 1]:
            if neighbour[0] < end and start < neighbour[1]:
                return False
        return True

    def reserve(self, kind: ResourceKind, resource_id: str | None, day: str, start: int, end: int) -> None:
        if resource_id is None:
            return
        if end <= start:
            raise ValueError(f"Empty interval [{start}, {end}) for {kind} {resource_id}")
        if not self.is_free(kind, resource_id, day, start, end):
            raise ReservationConflict(f"{kind} {resource_id} is already booked on {day} within [{start}, {end})")
        insort(self._occupied[(kind, resource_id, day)], (start, end))

    def release(self, kind: ResourceKind, resource_id: str | None, day: str, start: int, end: int) -> None:
        if resource_id is None:
            return
        intervals = self._occupied.get((kind, resource_id, day))
        if not intervals:
            return
        try:
            intervals.remove((start, end))
        except ValueError:
            return
        if not intervals:
            del self._occupied[(kind, resource_id, day)]

    def seed(
        self,
        *,
        day: str,
        start: int,
        end: int,
        teacher_id: str | None,
        room_id: str | None,
        batch_id: str | None,
    ) -> bool:
        """Record an existing booking; returns False when it clashes with one already seeded.

        Clashing bookings are merged into a single occupied interval so the
        whole span stays blocked.
        """
        clean = True
        for kind, resource_id in (("teacher", teacher_id), ("room", room_id), ("batch", batch_id)):
            if resource_id is None:
                continue
            if not self.is_free(kind, resource_id, day, start, end):
                clean = False
            self._merge_insert((kind, resource_id, day), start, end)
        return clean

    def _merge_insert(self, key: tuple[str, str, str], start: int, end: int) -> None:
        intervals = self._occupied[key]
        kept: list[tuple[int, int]] = []
        for item in intervals:
            if item[0] < end and start < item[1]:
                start = min(start, item[0])
                end = max(end, item[1])
            else:
                kept.append(item)
        insort(kept, (start, end))
        self._occupied[key] = kept
