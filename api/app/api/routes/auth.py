from fastapi import APIRouter, Depends, HTTPException, status

from app.core.auth import AuthenticationError
from app.schemas.agents import AuthVerifiedAgentOut, AuthVerifyOut, AuthVerifyRequest
from app.services.authenticator import AgentAuthenticator, get_authenticator
from app.services.repository import RepositoryConflictError, RepositoryUnavailableError

router = APIRouter()


@router.post("/verify", response_model=AuthVerifyOut)
async def verify_api_key(
    payload: AuthVerifyRequest,
    authenticator: AgentAuthenticator = Depends(get_authenticator),
) -> AuthVerifyOut:
    try:
        authenticated = await authenticator.verify(payload.moltbook_api_key)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return AuthVerifyOut(agent=AuthVerifiedAgentOut.model_validate(authenticated.agent, from_attributes=True))
