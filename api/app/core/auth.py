from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.repository import AgentRecord


class AuthFailureKind(str, Enum):
    MALFORMED_CREDENTIAL = "malformed_credential"
    INVALID_CREDENTIAL = "invalid_credential"


class AuthenticationError(Exception):
    """Base error for credentials that do not resolve to an agent."""

    kind: AuthFailureKind

    def __init__(self, message: str) -> None:
        super().__init__(message)


class MalformedCredentialError(AuthenticationError):
    """Raised when the API key is missing its required prefix."""

    kind = AuthFailureKind.MALFORMED_CREDENTIAL


class InvalidCredentialError(AuthenticationError):
    """Raised when Moltbook rejects the API key or cannot be reached."""

    kind = AuthFailureKind.INVALID_CREDENTIAL


@dataclass(slots=True)
class AuthenticatedAgent:
    agent: AgentRecord
    api_key_hash: str


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def parse_bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", maxsplit=1)[1].strip()
    return token or None
