from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from classplanner.models.schedule_proposal import ProposalStatus
from classplanner.schemas.time_slots import DAY_VALUES, CustomTimeSlots

SelectionMode = Literal["all", "department", "single_batch", "multi_batch"]
ShiftName = Literal["day", "evening"]


def _validate_days(value: list[str] | None) -> list[str] | None:
    if value is None:
        return None
    cleaned: list[str] = []
    for day in value:
        day = day.strip()
        if day not in DAY_VALUES:
            raise ValueError(f"Invalid day value: {day}")
        if day not in cleaned:
            cleaned.append(day)
    return cleaned


class ClassDurations(BaseModel):
    theory: int | None = Field(default=None, ge=15, le=480)
    lab: int | None = Field(default=None, ge=15, le=480)
    project: int | None = Field(default=None, ge=15, le=480)


class PreferredRooms(BaseModel):
    theory: str | None = Field(default=None, max_length=36)
    lab: str | None = Field(default=None, max_length=36)


class ScheduleScopeRequest(BaseModel):
    sessionId: str = Field(min_length=1, max_length=36)
    selectionMode: SelectionMode = "all"
    departmentId: str | None = Field(default=None, max_length=36)
    batchIds: list[str] | None = None
    targetShift: ShiftName | None = None

    @field_validator("batchIds")
    @classmethod
    def normalize_batch_ids(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        unique: list[str] = []
        for item in value:
            item = item.strip()
            if item and item not in unique:
                unique.append(item)
        return unique

    @model_validator(mode="after")
    def validate_selection(self) -> "ScheduleScopeRequest":
        if self.selectionMode == "department" and not self.departmentId:
            raise ValueError("departmentId is required for department selection")
        if self.selectionMode == "single_batch" and len(self.batchIds or []) != 1:
            raise ValueError("single_batch selection requires exactly one batch id")
        if self.selectionMode == "multi_batch" and not self.batchIds:
            raise ValueError("multi_batch selection requires at least one batch id")
        return self


class ValidateScheduleRequest(ScheduleScopeRequest):
    pass


class GenerateScheduleRequest(ScheduleScopeRequest):
    classDurationMinutes: int | None = Field(default=None, ge=15, le=480)
    classDurations: ClassDurations | None = None
    offDays: list[str] | None = None
    workingDays: list[str] | None = None
    customTimeSlots: CustomTimeSlots | None = None
    preferredRooms: PreferredRooms | None = None
    groupLabsTogether: bool = True
    generatedBy: str | None = Field(default=None, max_length=100)

    @field_validator("offDays", "workingDays")
    @classmethod
    def validate_days(cls, value: list[str] | None) -> list[str] | None:
        return _validate_days(value)


class UnassignedCourse(BaseModel):
    batchId: str
    batchName: str
    courseId: str
    courseCode: str
    courseName: str
    semester: int | None = None


class ValidationResultOut(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    unassignedCourses: list[UnassignedCourse] = Field(default_factory=list)


class ClassAssignmentOut(BaseModel):
    batchId: str
    batchName: str
    batchShift: str
    sessionCourseId: str
    courseId: str
    courseCode: str
    courseName: str
    teacherId: str | None = None
    teacherName: str | None = None
    classroomId: str
    roomNumber: str
    daysOfWeek: list[str]
    startTime: str
    endTime: str
    classType: str


class UnscheduledCourseOut(BaseModel):
    batchId: str
    batchName: str
    batchShift: str | None = None
    sessionCourseId: str | None = None
    courseId: str
    courseCode: str
    courseName: str
    courseType: str
    teacherId: str | None = None
    teacherName: str | None = None
    semester: int | None = None
    durationMinutes: int | None = None
    reason: str
    message: str


class ProposalMetadata(BaseModel):
    itemCount: int = 0
    unscheduledCount: int = 0
    options: dict = Field(default_factory=dict)


class ScheduleProposalOut(BaseModel):
    id: str
    sessionId: str
    generatedBy: str | None = None
    status: ProposalStatus
    scheduleData: list[ClassAssignmentOut] = Field(default_factory=list)
    unscheduled: list[UnscheduledCourseOut] = Field(default_factory=list)
    metadata: ProposalMetadata = Field(default_factory=ProposalMetadata)
    createdAt: datetime | None = None
    appliedAt: datetime | None = None


class GenerationStats(BaseModel):
    scheduled: int
    unscheduled: int
    unscheduledCourses: list[UnscheduledCourseOut] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    runtimeMs: int = 0


class GenerateScheduleResponse(BaseModel):
    proposal: ScheduleProposalOut
    stats: GenerationStats


class GenerationBlockedResponse(BaseModel):
    message: str
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    unassignedCourses: list[UnassignedCourse] = Field(default_factory=list)
    stats: GenerationStats


class BatchIdsRequest(BaseModel):
    batchIds: list[str] = Field(min_length=1)


class SessionIdRequest(BaseModel):
    sessionId: str = Field(min_length=1, max_length=36)


class CheckConflictsRequest(BaseModel):
    batchIds: list[str] = Field(default_factory=list)
    sessionId: str | None = None


class CloseSchedulesResponse(BaseModel):
    success: bool = True
    closedCount: int
    message: str


class ReopenSchedulesResponse(BaseModel):
    success: bool = True
    reopenedCount: int
    message: str


class ApplyProposalResponse(BaseModel):
    success: bool = True
    schedulesCreated: int
    schedulesClosed: int
    message: str


class StatusSummaryOut(BaseModel):
    active: int = 0
    closed: int = 0
    archived: int = 0


class CourseScheduleOut(BaseModel):
    id: str
    sessionId: str
    batchId: str
    sessionCourseId: str
    teacherId: str | None = None
    classroomId: str | None = None
    daysOfWeek: list[str]
    startTime: str
    endTime: str
    classType: str
    status: str
    proposalId: str | None = None
