from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status

from clerkship_scheduler.api.deps import get_assignment_service
from clerkship_scheduler.schemas.assignment import (
    AssignmentCreate,
    AssignmentOut,
    AssignmentUpdate,
    AssignmentValidateRequest,
    BulkCreateFailureOut,
    BulkCreateOut,
    BulkCreateRequest,
    BulkReassignOut,
    BulkReassignRequest,
    ChangeDateRequest,
    ClerkshipProgressOut,
    EditResultOut,
    ReassignRequest,
    StudentProgressOut,
    SwapRequest,
    ValidationResultOut,
    ViolationOut,
)
from clerkship_scheduler.services import editing
from clerkship_scheduler.services.assignment_service import AssignmentService, BulkFailure
from clerkship_scheduler.services.providers import AssignmentFilter, ProposedAssignment

router = APIRouter()


def _proposal(payload: AssignmentCreate) -> ProposedAssignment:
    return ProposedAssignment(
        student_id=payload.student_id,
        preceptor_id=payload.preceptor_id,
        clerkship_id=payload.clerkship_id,
        date=payload.date,
        status=payload.status,
    )


def bulk_failure_out(failure: BulkFailure) -> BulkCreateFailureOut:
    return BulkCreateFailureOut(
        index=failure.index,
        proposed=AssignmentCreate(**asdict(failure.proposed)),
        errors=failure.errors,
        violations=[ViolationOut.model_validate(item) for item in failure.violations],
    )


def _edit_out(result: editing.EditResult) -> EditResultOut:
    return EditResultOut(
        valid=result.valid,
        errors=result.errors,
        violations=[ViolationOut.model_validate(item) for item in result.violations],
        assignments=[AssignmentOut.model_validate(item) for item in result.assignments],
    )


@router.get("/assignments", response_model=list[AssignmentOut])
def list_assignments(
    student_id: str | None = Query(default=None),
    preceptor_id: str | None = Query(default=None),
    clerkship_id: str | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    service: AssignmentService = Depends(get_assignment_service),
) -> list[AssignmentOut]:
    filters = AssignmentFilter(
        student_id=student_id,
        preceptor_id=preceptor_id,
        clerkship_id=clerkship_id,
        start_date=start_date,
        end_date=end_date,
    )
    return [AssignmentOut.model_validate(item) for item in service.list_assignments(filters)]


@router.post("/assignments", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: AssignmentCreate,
    service: AssignmentService = Depends(get_assignment_service),
) -> AssignmentOut:
    return AssignmentOut.model_validate(service.create_assignment(_proposal(payload)))


@router.post("/assignments/validate", response_model=ValidationResultOut)
def validate_assignment(
    payload: AssignmentValidateRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> ValidationResultOut:
    result = service.validate_assignment(_proposal(payload), payload.exclude_assignment_id)
    return ValidationResultOut(
        valid=result.valid,
        errors=result.messages,
        violations=[ViolationOut.model_validate(item) for item in result.errors],
    )


@router.post("/assignments/bulk", response_model=BulkCreateOut)
def bulk_create_assignments(
    payload: BulkCreateRequest,
    mode: str | None = Query(default=None, pattern="^(best_effort|all_or_nothing)$"),
    service: AssignmentService = Depends(get_assignment_service),
) -> BulkCreateOut:
    result = service.bulk_create_assignments([_proposal(item) for item in payload.assignments], mode=mode)
    return BulkCreateOut(
        mode=result.mode,
        successful=[AssignmentOut.model_validate(item) for item in result.successful],
        failed=[bulk_failure_out(item) for item in result.failed],
        rolled_back=result.rolled_back,
    )


@router.post("/assignments/swap", response_model=EditResultOut)
def swap_assignments(
    payload: SwapRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> EditResultOut:
    result = editing.swap_preceptors(
        service,
        payload.first_assignment_id,
        payload.second_assignment_id,
        dry_run=payload.dry_run,
    )
    return _edit_out(result)


@router.post("/assignments/bulk-reassign", response_model=BulkReassignOut)
def bulk_reassign(
    payload: BulkReassignRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> BulkReassignOut:
    result = editing.bulk_reassign(service, payload.assignment_ids, payload.preceptor_id)
    return BulkReassignOut.model_validate(result)


@router.get("/assignments/{assignment_id}", response_model=AssignmentOut)
def get_assignment(
    assignment_id: str,
    service: AssignmentService = Depends(get_assignment_service),
) -> AssignmentOut:
    return AssignmentOut.model_validate(service.get_assignment(assignment_id))


@router.put("/assignments/{assignment_id}", response_model=AssignmentOut)
def update_assignment(
    assignment_id: str,
    payload: AssignmentUpdate,
    service: AssignmentService = Depends(get_assignment_service),
) -> AssignmentOut:
    changes = payload.model_dump(exclude_none=True)
    return AssignmentOut.model_validate(service.update_assignment(assignment_id, changes))


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment(
    assignment_id: str,
    service: AssignmentService = Depends(get_assignment_service),
) -> Response:
    service.delete_assignment(assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/assignments/{assignment_id}/validate-edit", response_model=EditResultOut)
def validate_edit(
    assignment_id: str,
    payload: AssignmentUpdate,
    service: AssignmentService = Depends(get_assignment_service),
) -> EditResultOut:
    return _edit_out(editing.validate_edit(service, assignment_id, payload.model_dump(exclude_none=True)))


@router.post("/assignments/{assignment_id}/reassign", response_model=EditResultOut)
def reassign_assignment(
    assignment_id: str,
    payload: ReassignRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> EditResultOut:
    result = editing.reassign_to_preceptor(service, assignment_id, payload.preceptor_id, dry_run=payload.dry_run)
    return _edit_out(result)


@router.post("/assignments/{assignment_id}/change-date", response_model=EditResultOut)
def change_assignment_date(
    assignment_id: str,
    payload: ChangeDateRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> EditResultOut:
    result = editing.change_assignment_date(service, assignment_id, payload.date, dry_run=payload.dry_run)
    return _edit_out(result)


@router.get("/students/{student_id}/progress", response_model=StudentProgressOut)
def student_progress(
    student_id: str,
    service: AssignmentService = Depends(get_assignment_service),
) -> StudentProgressOut:
    progress = service.student_progress(student_id)
    return StudentProgressOut(
        student_id=student_id,
        clerkships=[ClerkshipProgressOut.model_validate(item) for item in progress],
    )
