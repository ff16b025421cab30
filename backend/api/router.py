from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from api.dependencies import get_candidate_service, get_evaluation_service, get_llm_client
from config import settings
from models.requests import CandidateCreateRequest, DecisionUpdateRequest, JobCreateRequest
from models.responses import CandidateSummary, HealthResponse, ProfileResponse
from models.schemas import AuditEntry, Chunk, Evaluation, EvaluationRecord, Job
from services.candidate_service import CandidateService
from services.errors import (
    ConfigurationError,
    EvaluationError,
    EvaluationFailedError,
    EvaluationInProgressError,
    MissingPrerequisiteError,
    ProviderOverloadedError,
)
from services.evaluation_service import EvaluationOrchestrator
from services.gemini_client import GeminiClient

router = APIRouter()
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

ERROR_STATUS = (
    (MissingPrerequisiteError, 400),
    (EvaluationInProgressError, 409),
    (ProviderOverloadedError, 503),
    (EvaluationFailedError, 502),
    (ConfigurationError, 500),
)


def _http_error(e: EvaluationError) -> HTTPException:
    for error_cls, status in ERROR_STATUS:
        if isinstance(e, error_cls):
            return HTTPException(status_code=status, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _not_found(what: str = "Candidate") -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found")


@router.get("/health", response_model=HealthResponse)
async def health(llm: GeminiClient = Depends(get_llm_client)):
    return HealthResponse(
        status="ok",
        gemini_configured=llm.is_configured,
        embedding_provider=settings.embedding_provider,
    )


@router.post("/jobs", response_model=Job, status_code=201)
async def create_job(
    body: JobCreateRequest,
    x_owner_id: str | None = Header(None),
    service: CandidateService = Depends(get_candidate_service),
):
    return await service.create_job(body.title, body.description, body.blueprint, owner_id=x_owner_id)


@router.post("/jobs/{job_id}/parse-blueprint", response_model=Job)
@limiter.limit(settings.evaluate_rate_limit)
async def parse_job_blueprint(
    request: Request,
    job_id: str,
    x_owner_id: str | None = Header(None),
    service: CandidateService = Depends(get_candidate_service),
):
    try:
        job = await service.parse_blueprint(job_id, owner_id=x_owner_id)
    except EvaluationError as e:
        raise _http_error(e) from e
    if job is None:
        raise _not_found("Job")
    return job


@router.post("/jobs/{job_id}/candidates", response_model=CandidateSummary, status_code=201)
async def create_candidate(
    job_id: str,
    body: CandidateCreateRequest,
    x_owner_id: str | None = Header(None),
    service: CandidateService = Depends(get_candidate_service),
):
    if not body.cv_text.strip():
        raise HTTPException(status_code=400, detail="CV text is empty")

    candidate = await service.create_candidate(
        job_id,
        body.cv_text,
        cv_filename=body.cv_filename,
        owner_id=x_owner_id,
        name=body.name,
        email=body.email,
    )
    if candidate is None:
        raise _not_found("Job")

    chunks = await service.get_chunks(candidate.id) or []
    return CandidateSummary(
        id=candidate.id,
        job_id=candidate.job_id,
        name=candidate.name,
        email=candidate.email,
        cv_filename=candidate.cv_filename,
        status=candidate.status,
        chunk_count=len(chunks),
        created_at=candidate.created_at,
    )


@router.get("/candidates/{candidate_id}/chunks", response_model=list[Chunk])
async def get_chunks(
    candidate_id: str,
    x_owner_id: str | None = Header(None),
    service: CandidateService = Depends(get_candidate_service),
):
    chunks = await service.get_chunks(candidate_id, owner_id=x_owner_id)
    if chunks is None:
        raise _not_found()
    return chunks


@router.post("/candidates/{candidate_id}/parse", response_model=ProfileResponse)
@limiter.limit(settings.evaluate_rate_limit)
async def parse_candidate(
    request: Request,
    candidate_id: str,
    x_owner_id: str | None = Header(None),
    service: CandidateService = Depends(get_candidate_service),
):
    try:
        profile = await service.parse_profile(candidate_id, owner_id=x_owner_id)
    except EvaluationError as e:
        raise _http_error(e) from e
    if profile is None:
        raise _not_found()
    return ProfileResponse(candidate_id=candidate_id, profile=profile)


@router.post("/candidates/{candidate_id}/evaluate", response_model=Evaluation, status_code=201)
@limiter.limit(settings.evaluate_rate_limit)
async def evaluate_candidate(
    request: Request,
    candidate_id: str,
    force: bool = False,
    x_owner_id: str | None = Header(None),
    service: EvaluationOrchestrator = Depends(get_evaluation_service),
):
    try:
        evaluation = await service.evaluate(candidate_id, force=force, owner_id=x_owner_id)
    except EvaluationError as e:
        raise _http_error(e) from e
    if evaluation is None:
        raise _not_found()
    return evaluation


@router.get("/candidates/{candidate_id}/evaluation", response_model=EvaluationRecord)
async def get_evaluation(
    candidate_id: str,
    x_owner_id: str | None = Header(None),
    service: EvaluationOrchestrator = Depends(get_evaluation_service),
):
    record = await service.get_evaluation(candidate_id, owner_id=x_owner_id)
    if record is None:
        raise _not_found("Evaluation")
    return record


@router.patch("/candidates/{candidate_id}/decision", response_model=EvaluationRecord)
async def update_decision(
    candidate_id: str,
    body: DecisionUpdateRequest,
    x_owner_id: str | None = Header(None),
    service: EvaluationOrchestrator = Depends(get_evaluation_service),
):
    record = await service.record_decision(candidate_id, body.decision, owner_id=x_owner_id)
    if record is None:
        raise _not_found("Evaluation")
    return record


@router.get("/candidates/{candidate_id}/audit", response_model=list[AuditEntry])
async def get_audit_trail(
    candidate_id: str,
    x_owner_id: str | None = Header(None),
    service: CandidateService = Depends(get_candidate_service),
):
    trail = await service.get_audit_trail(candidate_id, owner_id=x_owner_id)
    if trail is None:
        raise _not_found()
    return trail


@router.delete("/candidates/{candidate_id}", status_code=204)
async def delete_candidate(
    candidate_id: str,
    x_owner_id: str | None = Header(None),
    service: CandidateService = Depends(get_candidate_service),
):
    if not await service.delete_candidate(candidate_id, owner_id=x_owner_id):
        raise _not_found()
    return Response(status_code=204)
