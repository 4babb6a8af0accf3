from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import AuthenticatedAgent
from app.core.security import get_current_agent
from app.schemas.agents import AgentOut, AgentPublicOut, SkillsUpdateRequest
from app.services.authenticator import AgentAuthenticator, get_authenticator
from app.services.repository import RepositoryNotFoundError, RepositoryUnavailableError, get_repository

router = APIRouter()


@router.get("/me", response_model=AgentOut)
async def get_me(current: AuthenticatedAgent = Depends(get_current_agent)) -> AgentOut:
    return AgentOut.model_validate(current.agent, from_attributes=True)


@router.put("/me/skills", response_model=AgentOut)
async def put_my_skills(
    payload: SkillsUpdateRequest,
    current: AuthenticatedAgent = Depends(get_current_agent),
    authenticator: AgentAuthenticator = Depends(get_authenticator),
) -> AgentOut:
    try:
        agent = await authenticator.update_skills(current, payload.skills)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return AgentOut.model_validate(agent, from_attributes=True)


@router.get("/{name}", response_model=AgentPublicOut)
async def get_agent(name: str, repository=Depends(get_repository)) -> AgentPublicOut:
    try:
        agent = await repository.get_agent_by_name(name)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if agent is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="agent not found")
    return AgentPublicOut.model_validate(agent, from_attributes=True)
