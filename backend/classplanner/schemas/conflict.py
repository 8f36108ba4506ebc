from typing import List, Literal

from pydantic import BaseModel


class ConflictDetail(BaseModel):
    id: str
    type: Literal["room_conflict", "teacher_conflict", "batch_conflict"]
    day: str
    description: str
    schedule1: str
    schedule2: str


class ConflictCheckResult(BaseModel):
    hasConflicts: bool
    count: int
    conflicts: List[ConflictDetail]
