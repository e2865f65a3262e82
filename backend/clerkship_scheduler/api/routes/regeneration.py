from fastapi import APIRouter, Depends

from clerkship_scheduler.api.routes.assignments import bulk_failure_out
from clerkship_scheduler.api.deps import get_assignment_service
from clerkship_scheduler.schemas.assignment import AssignmentOut
from clerkship_scheduler.schemas.regeneration import (
    AffectedAssignmentOut,
    AssignmentRecordOut,
    ImpactReportOut,
    RegenerationApplyOut,
    RegenerationRequest,
    RequirementProgressOut,
    UnmetRequirementOut,
)
from clerkship_scheduler.services.assignment_service import AssignmentService
from clerkship_scheduler.services.context_builder import load_context
from clerkship_scheduler.services.impact_analyzer import analyze_regeneration_impact
from clerkship_scheduler.services.regeneration import apply_regeneration

router = APIRouter()


@router.post("/regeneration/preview", response_model=ImpactReportOut)
def preview_regeneration(
    payload: RegenerationRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> ImpactReportOut:
    context = load_context(service.store, payload.window_start, payload.window_end)
    report = analyze_regeneration_impact(
        context,
        payload.cutover_date,
        payload.window_end,
        payload.strategy,
        service.policy,
    )
    return ImpactReportOut(
        strategy=report.strategy,
        cutover_date=report.cutover_date,
        window_end=report.window_end,
        past_count=report.past_count,
        preserved_count=report.preserved_count,
        deleted_count=report.deleted_count,
        affected_count=report.affected_count,
        replaceable_count=report.replaceable_count,
        deleted_assignments=[AssignmentRecordOut.model_validate(item) for item in report.deleted_assignments],
        affected_assignments=[
            AffectedAssignmentOut(
                original=AssignmentRecordOut.model_validate(item.original),
                replacement_preceptor_id=item.replacement_preceptor_id,
                reasons=[reason.message for reason in item.reasons],
            )
            for item in report.affected_assignments
        ],
        progress=[RequirementProgressOut.model_validate(item) for item in report.progress],
        unmet=[UnmetRequirementOut.model_validate(item) for item in report.unmet],
        summary=report.summary,
    )


@router.post("/regeneration/apply", response_model=RegenerationApplyOut)
def apply_regeneration_route(
    payload: RegenerationRequest,
    service: AssignmentService = Depends(get_assignment_service),
) -> RegenerationApplyOut:
    context = load_context(service.store, payload.window_start, payload.window_end)
    result = apply_regeneration(service, context, payload.cutover_date, payload.window_end, payload.strategy)
    return RegenerationApplyOut(
        strategy=result.strategy,
        deleted_count=result.deleted_count,
        preserved_count=result.preserved_count,
        new_assignments=[AssignmentOut.model_validate(item) for item in result.new_assignments],
        unresolved=[AssignmentRecordOut.model_validate(item) for item in result.unresolved],
        generation_failures=[bulk_failure_out(item) for item in result.generation_failures],
    )
