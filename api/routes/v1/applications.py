"""
Application lifecycle endpoints.

Submission lives under ``/jobs/{job_id}/apply``; everything else is under
``/applications``. Static paths are declared before ``/{application_id}``
so they are not captured by it.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Path, Query, UploadFile, status

from api.dependencies import (
    get_attachment_storage,
    get_current_actor,
    get_dashboard_service,
    get_lifecycle_engine,
    get_policy,
    get_provenance,
)
from api.schemas.applications import (
    ApplicationResponse,
    AttachmentResponse,
    DashboardQuery,
    InterviewResponse,
    ScheduleInterviewRequest,
    ScoreResponse,
    ScoringDetailsResponse,
    SkippedDocumentResponse,
    StatusChangeRequest,
    SubmissionResponse,
    SubmitApplicationRequest,
    WithdrawalResponse,
    WithdrawRequest,
)
from api.schemas.common import MessageResponse, PaginatedResponse
from api.services.applications import ApplicationLifecycleEngine
from api.services.dashboard import ApplicationPage, DashboardService
from api.services.documents import UploadedFile, store_uploads
from core.config import settings
from core.domain import Actor, ActorRole, ApplicationStatus, Provenance
from core.errors import ForbiddenError
from core.interfaces import AttachmentStorage
from core.policies import Permission, RolePolicy

logger = logging.getLogger(__name__)

jobs_router = APIRouter(prefix="/jobs", tags=["Applications"])
router = APIRouter(prefix="/applications", tags=["Applications"])


def _page_response(result: ApplicationPage) -> PaginatedResponse[ApplicationResponse]:
    return PaginatedResponse[ApplicationResponse].create(
        items=[ApplicationResponse.build(a, include_history=False) for a in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


async def _to_upload(upload: UploadFile) -> UploadedFile:
    return UploadedFile(
        name=upload.filename or "upload",
        content_type=upload.content_type or "application/octet-stream",
        data=await upload.read(),
    )


# ==================== Submission ===================== #

@jobs_router.post(
    "/{job_id}/apply",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply to a job",
)
async def submit_application(
    request: SubmitApplicationRequest,
    job_id: UUID = Path(..., description="Job ID"),
    actor: Actor = Depends(get_current_actor),
    provenance: Provenance = Depends(get_provenance),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    """Create an application. A candidate may apply to a job only once."""
    submission = await engine.submit(job_id, request, actor, provenance)
    return SubmissionResponse.build(submission.application, next_steps=submission.next_steps)


# ==================== Listings ===================== #

@router.get(
    "/dashboard",
    response_model=PaginatedResponse[ApplicationResponse],
    summary="Company dashboard",
)
async def dashboard(
    company_id: UUID = Query(..., description="Company whose applications to list"),
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    min_score: Optional[int] = Query(None, ge=0, le=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at", pattern="^(created_at|score)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    actor: Actor = Depends(get_current_actor),
    policy: RolePolicy = Depends(get_policy),
    service: DashboardService = Depends(get_dashboard_service),
):
    if not policy.can_view_company(actor, company_id):
        raise ForbiddenError(action=Permission.DASHBOARD_VIEW.value)

    result = await service.search(
        DashboardQuery(
            company_id=company_id,
            status=status_filter,
            min_score=min_score,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    )
    return _page_response(result)


@router.get(
    "/candidates/{candidate_id}",
    response_model=PaginatedResponse[ApplicationResponse],
    summary="Applications of a candidate",
)
async def list_candidate_applications(
    candidate_id: UUID = Path(...),
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: DashboardService = Depends(get_dashboard_service),
):
    """Candidates see their own applications; company staff see those made to their company."""
    company_id = None
    if actor.role == ActorRole.CANDIDATE:
        if actor.candidate_id != candidate_id:
            raise ForbiddenError(action=Permission.APPLICATION_READ.value)
    elif actor.role != ActorRole.ADMIN:
        if actor.company_id is None:
            raise ForbiddenError(action=Permission.APPLICATION_READ.value)
        company_id = actor.company_id

    result = await service.for_candidate(
        candidate_id, status=status_filter, page=page, limit=limit, company_id=company_id
    )
    return _page_response(result)


@router.get(
    "/jobs/{job_id}",
    response_model=PaginatedResponse[ApplicationResponse],
    summary="Applications to a job",
)
async def list_job_applications(
    job_id: UUID = Path(...),
    status_filter: Optional[ApplicationStatus] = Query(None, alias="status"),
    min_score: Optional[int] = Query(None, ge=0, le=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    policy: RolePolicy = Depends(get_policy),
    service: DashboardService = Depends(get_dashboard_service),
):
    if actor.role != ActorRole.ADMIN and (
        actor.company_id is None or not policy.can_view_company(actor, actor.company_id)
    ):
        raise ForbiddenError(action=Permission.DASHBOARD_VIEW.value)

    result = await service.for_job(
        job_id,
        status=status_filter,
        min_score=min_score,
        page=page,
        limit=limit,
        company_id=None if actor.role == ActorRole.ADMIN else actor.company_id,
    )
    return _page_response(result)


# ==================== Single application ===================== #

@router.get("/{application_id}", response_model=ApplicationResponse, summary="Get application")
async def get_application(
    application_id: UUID = Path(..., description="Application ID"),
    include_history: bool = Query(True, description="Include the status history"),
    actor: Actor = Depends(get_current_actor),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    application = await engine.get(application_id, actor)
    return ApplicationResponse.build(application, include_history=include_history)


@router.put("/{application_id}/status", response_model=ApplicationResponse, summary="Change status")
async def change_status(
    request: StatusChangeRequest,
    application_id: UUID = Path(...),
    actor: Actor = Depends(get_current_actor),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    application = await engine.change_status(application_id, request, actor)
    return ApplicationResponse.build(application)


@router.put("/{application_id}/withdraw", response_model=WithdrawalResponse, summary="Withdraw")
async def withdraw_application(
    application_id: UUID = Path(...),
    request: Optional[WithdrawRequest] = Body(None),
    actor: Actor = Depends(get_current_actor),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    summary = await engine.withdraw(application_id, actor, reason=request.reason if request else None)
    return WithdrawalResponse(
        application_id=summary.application_id,
        job_id=summary.job_id,
        new_status=summary.new_status,
    )


@router.patch(
    "/{application_id}/interviews",
    response_model=InterviewResponse,
    summary="Schedule interview",
)
async def schedule_interview(
    request: ScheduleInterviewRequest,
    application_id: UUID = Path(...),
    actor: Actor = Depends(get_current_actor),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    interview = await engine.schedule_interview(application_id, request, actor)
    return InterviewResponse.model_validate(interview)


@router.post(
    "/{application_id}/documents",
    response_model=AttachmentResponse,
    summary="Upload documents",
)
async def upload_documents(
    application_id: UUID = Path(...),
    resume: Optional[UploadFile] = File(None),
    cover_letter: Optional[UploadFile] = File(None),
    documents: Optional[list[UploadFile]] = File(None),
    actor: Actor = Depends(get_current_actor),
    storage: AttachmentStorage = Depends(get_attachment_storage),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    """
    Store uploaded files and attach them.

    Supplementary documents that fail validation are skipped and listed in
    the response; an invalid resume or cover letter fails the request.
    """
    # Fail on unknown applications and missing rights before anything is stored
    await engine.get(application_id, actor, permission=Permission.APPLICATION_ATTACH)

    batch, rejected = await store_uploads(
        storage,
        resume=await _to_upload(resume) if resume else None,
        cover_letter=await _to_upload(cover_letter) if cover_letter else None,
        documents=[await _to_upload(d) for d in documents or []],
        max_bytes=settings.max_upload_size_mb * 1024 * 1024,
    )
    result = await engine.attach(application_id, batch, actor, owned=batch.urls)

    skipped = [SkippedDocumentResponse.model_validate(s) for s in rejected + result.skipped]
    return AttachmentResponse.build(result.application, accepted=result.accepted, skipped=skipped)


@router.delete(
    "/{application_id}/remove-document",
    response_model=ApplicationResponse,
    summary="Remove documents",
)
async def remove_documents(
    application_id: UUID = Path(...),
    actor: Actor = Depends(get_current_actor),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    """Remove the cover letter file and every supplementary document."""
    application = await engine.remove_all(application_id, actor)
    return ApplicationResponse.build(application)


@router.post("/{application_id}/score", response_model=ScoreResponse, summary="Recalculate score")
async def recalculate_score(
    application_id: UUID = Path(...),
    actor: Actor = Depends(get_current_actor),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    application = await engine.recalculate_score(application_id, actor)
    return ScoreResponse(
        application_id=application.id,
        score=application.score,
        scoring_details=ScoringDetailsResponse.model_validate(application.scoring_details),
    )


@router.put("/{application_id}/archive", response_model=ApplicationResponse, summary="Archive")
async def archive_application(
    application_id: UUID = Path(...),
    actor: Actor = Depends(get_current_actor),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    application = await engine.archive(application_id, actor)
    return ApplicationResponse.build(application)


@router.delete("/{application_id}", response_model=MessageResponse, summary="Delete application")
async def delete_application(
    application_id: UUID = Path(...),
    actor: Actor = Depends(get_current_actor),
    engine: ApplicationLifecycleEngine = Depends(get_lifecycle_engine),
):
    await engine.delete(application_id, actor)
    return MessageResponse(message="Application deleted successfully")
