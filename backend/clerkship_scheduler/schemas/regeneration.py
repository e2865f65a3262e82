from datetime import date as date_type

from pydantic import BaseModel, Field, model_validator

from clerkship_scheduler.schemas.assignment import AssignmentOut, BulkCreateFailureOut
from clerkship_scheduler.services.regeneration import RegenerationStrategy


class RegenerationRequest(BaseModel):
    window_start: date_type
    window_end: date_type
    cutover_date: date_type
    strategy: RegenerationStrategy = RegenerationStrategy.minimal_change

    @model_validator(mode="after")
    def check_window(self) -> "RegenerationRequest":
        if self.window_end < self.window_start:
            raise ValueError("window_end must be on or after window_start")
        return self


class AssignmentRecordOut(BaseModel):
    id: str
    student_id: str
    preceptor_id: str
    clerkship_id: str
    date: date_type
    status: str

    model_config = {"from_attributes": True}


class AffectedAssignmentOut(BaseModel):
    original: AssignmentRecordOut
    replacement_preceptor_id: str | None = None
    reasons: list[str] = Field(default_factory=list)


class RequirementProgressOut(BaseModel):
    student_id: str
    clerkship_id: str
    required_days: int
    completed_days: int
    remaining_days: int

    model_config = {"from_attributes": True}


class UnmetRequirementOut(BaseModel):
    student_id: str
    student_name: str
    clerkship_id: str
    clerkship_name: str
    required_days: int
    assigned_days: int
    remaining_days: int

    model_config = {"from_attributes": True}


class ImpactReportOut(BaseModel):
    strategy: RegenerationStrategy
    cutover_date: date_type
    window_end: date_type
    past_count: int
    preserved_count: int
    deleted_count: int
    affected_count: int
    replaceable_count: int
    deleted_assignments: list[AssignmentRecordOut] = Field(default_factory=list)
    affected_assignments: list[AffectedAssignmentOut] = Field(default_factory=list)
    progress: list[RequirementProgressOut] = Field(default_factory=list)
    unmet: list[UnmetRequirementOut] = Field(default_factory=list)
    summary: dict = Field(default_factory=dict)


class RegenerationApplyOut(BaseModel):
    strategy: RegenerationStrategy
    deleted_count: int
    preserved_count: int
    new_assignments: list[AssignmentOut] = Field(default_factory=list)
    unresolved: list[AssignmentRecordOut] = Field(default_factory=list)
    generation_failures: list[BulkCreateFailureOut] = Field(default_factory=list)
