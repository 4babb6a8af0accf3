from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas.agents import StatsOut
from app.services.repository import RepositoryUnavailableError, get_repository

router = APIRouter()


@router.get("", response_model=StatsOut)
async def get_stats(repository=Depends(get_repository)) -> StatsOut:
    try:
        row = await repository.get_stats()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return StatsOut(**row)
