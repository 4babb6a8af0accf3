from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from app.core.auth import AuthenticatedAgent
from app.core.security import get_current_agent
from app.schemas.applications import ApplicationCreateRequest, ApplicationListOut, ApplicationOut
from app.schemas.jobs import (
    JobCreateRequest,
    JobListOut,
    JobOut,
    JobPatchRequest,
    JobSearchOut,
    JobSearchStatus,
    JobSort,
    JobType,
)
from app.services.job_search import JobSearchParams, parse_skills_param
from app.services.repository import (
    ApplicationAlreadyExistsError,
    RepositoryConflictError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


@router.get("", response_model=JobSearchOut)
async def search_jobs(
    job_status: JobSearchStatus = Query(default="open", alias="status"),
    job_type: JobType | None = Query(default=None, alias="type"),
    submolt: str | None = Query(default=None, max_length=100),
    skills: str | None = Query(default=None),
    q: str | None = Query(default=None),
    sort: JobSort = Query(default="newest"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    repository=Depends(get_repository),
) -> JobSearchOut:
    params = JobSearchParams(
        status=None if job_status == "all" else job_status,
        job_type=job_type,
        submolt=submolt,
        skills=parse_skills_param(skills),
        q=q,
        sort=sort,
        limit=limit,
        offset=offset,
    )
    try:
        rows, total = await repository.search_jobs(params)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobSearchOut(
        jobs=[JobOut(**row) for row in rows],
        total=total,
        limit=params.limit,
        offset=params.offset,
    )


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    current: AuthenticatedAgent = Depends(get_current_agent),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        row = await repository.create_job(poster_agent_id=current.agent.id, **payload.model_dump())
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobOut(**row)


@router.get("/mine", response_model=JobListOut)
async def list_my_jobs(
    current: AuthenticatedAgent = Depends(get_current_agent),
    repository=Depends(get_repository),
) -> JobListOut:
    try:
        rows = await repository.list_jobs_by_agent(current.agent.id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobListOut(jobs=[JobOut(**row) for row in rows])


@router.get("/{job_id}", response_model=JobOut)
async def get_job(job_id: str, repository=Depends(get_repository)) -> JobOut:
    try:
        row = await repository.get_job(job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobOut(**row)


@router.patch("/{job_id}", response_model=JobOut)
async def patch_job(
    job_id: str,
    payload: JobPatchRequest,
    current: AuthenticatedAgent = Depends(get_current_agent),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        row = await repository.update_job(
            job_id=job_id,
            actor_agent_id=current.agent.id,
            changes=payload.model_dump(exclude_unset=True, exclude_none=True),
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return JobOut(**row)


@router.delete("/{job_id}", response_model=JobOut)
async def cancel_job(
    job_id: str,
    current: AuthenticatedAgent = Depends(get_current_agent),
    repository=Depends(get_repository),
) -> JobOut:
    try:
        row = await repository.cancel_job(job_id=job_id, actor_agent_id=current.agent.id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    return JobOut(**row)


@router.post("/{job_id}/applications", response_model=ApplicationOut, status_code=status.HTTP_201_CREATED)
async def apply_to_job(
    job_id: str,
    payload: ApplicationCreateRequest | None = Body(default=None),
    current: AuthenticatedAgent = Depends(get_current_agent),
    repository=Depends(get_repository),
) -> ApplicationOut:
    try:
        row = await repository.create_application(
            job_id=job_id,
            applicant_agent_id=current.agent.id,
            message=payload.message if payload else None,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except ApplicationAlreadyExistsError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return ApplicationOut(**row)


@router.get("/{job_id}/applications", response_model=ApplicationListOut)
async def list_job_applications(
    job_id: str,
    current: AuthenticatedAgent = Depends(get_current_agent),
    repository=Depends(get_repository),
) -> ApplicationListOut:
    try:
        rows = await repository.list_applications_for_job(job_id=job_id, actor_agent_id=current.agent.id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    return ApplicationListOut(applications=[ApplicationOut(**row) for row in rows])
