from datetime import date as date_type, datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class AssignmentCreate(BaseModel):
    student_id: str = Field(min_length=1, max_length=36)
    preceptor_id: str = Field(min_length=1, max_length=36)
    clerkship_id: str = Field(min_length=1, max_length=36)
    date: date_type
    status: str = Field(default="scheduled", min_length=1, max_length=50)


class AssignmentUpdate(BaseModel):
    student_id: str | None = Field(default=None, min_length=1, max_length=36)
    preceptor_id: str | None = Field(default=None, min_length=1, max_length=36)
    clerkship_id: str | None = Field(default=None, min_length=1, max_length=36)
    date: date_type | None = None
    status: str | None = Field(default=None, min_length=1, max_length=50)

    @model_validator(mode="after")
    def require_a_change(self) -> "AssignmentUpdate":
        if not self.model_dump(exclude_none=True):
            raise ValueError("At least one field must be provided")
        return self


class AssignmentOut(BaseModel):
    id: str
    student_id: str
    preceptor_id: str
    clerkship_id: str
    date: date_type
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssignmentValidateRequest(AssignmentCreate):
    exclude_assignment_id: str | None = None


class ViolationOut(BaseModel):
    rule: str
    message: str
    conflicting_assignment_id: str | None = None

    model_config = {"from_attributes": True}


class ValidationResultOut(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    violations: list[ViolationOut] = Field(default_factory=list)


class BulkCreateRequest(BaseModel):
    assignments: list[AssignmentCreate] = Field(default_factory=list)


class BulkCreateFailureOut(BaseModel):
    index: int
    proposed: AssignmentCreate
    errors: list[str]
    violations: list[ViolationOut] = Field(default_factory=list)


class BulkCreateOut(BaseModel):
    mode: Literal["best_effort", "all_or_nothing"]
    successful: list[AssignmentOut] = Field(default_factory=list)
    failed: list[BulkCreateFailureOut] = Field(default_factory=list)
    rolled_back: bool = False


class ClerkshipProgressOut(BaseModel):
    clerkship_id: str
    clerkship_name: str
    required_days: int
    completed_days: int
    percentage: int

    model_config = {"from_attributes": True}


class StudentProgressOut(BaseModel):
    student_id: str
    clerkships: list[ClerkshipProgressOut] = Field(default_factory=list)


class ReassignRequest(BaseModel):
    preceptor_id: str = Field(min_length=1, max_length=36)
    dry_run: bool = False


class ChangeDateRequest(BaseModel):
    date: date_type
    dry_run: bool = False


class SwapRequest(BaseModel):
    first_assignment_id: str = Field(min_length=1, max_length=36)
    second_assignment_id: str = Field(min_length=1, max_length=36)
    dry_run: bool = False


class EditResultOut(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    violations: list[ViolationOut] = Field(default_factory=list)
    assignments: list[AssignmentOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class BulkReassignRequest(BaseModel):
    assignment_ids: list[str] = Field(min_length=1)
    preceptor_id: str = Field(min_length=1, max_length=36)


class BulkReassignFailureOut(BaseModel):
    id: str
    errors: list[str]

    model_config = {"from_attributes": True}


class BulkReassignOut(BaseModel):
    successful: list[str] = Field(default_factory=list)
    failed: list[BulkReassignFailureOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}
