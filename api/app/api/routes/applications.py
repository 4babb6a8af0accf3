from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import AuthenticatedAgent
from app.core.security import get_current_agent
from app.schemas.applications import ApplicationListOut, ApplicationOut, ApplicationPatchRequest
from app.services.repository import (
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


@router.get("/mine", response_model=ApplicationListOut)
async def list_my_applications(
    current: AuthenticatedAgent = Depends(get_current_agent),
    repository=Depends(get_repository),
) -> ApplicationListOut:
    try:
        rows = await repository.list_applications_by_agent(current.agent.id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ApplicationListOut(applications=[ApplicationOut(**row) for row in rows])


@router.patch("/{application_id}", response_model=ApplicationOut)
async def patch_application(
    application_id: str,
    payload: ApplicationPatchRequest,
    current: AuthenticatedAgent = Depends(get_current_agent),
    repository=Depends(get_repository),
) -> ApplicationOut:
    try:
        row = await repository.update_application_status(
            application_id=application_id,
            status=payload.status,
            actor_agent_id=current.agent.id,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryForbiddenError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ApplicationOut(**row)
