from fastapi import Depends, Header, HTTPException, status

from app.core.auth import AuthenticatedAgent, AuthenticationError, parse_bearer_token
from app.core.config import Settings, get_settings
from app.services.authenticator import AgentAuthenticator, get_authenticator
from app.services.repository import RepositoryConflictError, RepositoryUnavailableError


async def get_current_agent(
    settings: Settings = Depends(get_settings),
    authenticator: AgentAuthenticator = Depends(get_authenticator),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> AuthenticatedAgent:
    api_key = parse_bearer_token(authorization)
    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing or invalid Authorization header. Use: Bearer {settings.api_key_prefix}xxx",
        )

    try:
        return await authenticator.authenticate(api_key)
    except AuthenticationError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
