from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MoltbookOwner:
    x_handle: str | None = None
    x_name: str | None = None
    x_avatar: str | None = None
    x_bio: str | None = None


@dataclass(slots=True)
class MoltbookProfile:
    name: str
    description: str | None = None
    karma: int = 0
    follower_count: int = 0
    is_claimed: bool = False
    is_active: bool = True
    created_at: datetime | None = None
    owner: MoltbookOwner | None = None


class MoltbookClient:
    """Client for the Moltbook agent profile API.

    ``fetch_profile`` never raises. Any upstream failure returns ``None``;
    the cause is only logged.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def fetch_profile(self, api_key: str) -> MoltbookProfile | None:
        url = f"{self.base_url}/agents/me"
        headers = {"Authorization": f"Bearer {api_key}"}

        try:
            if self._client is not None:
                response = await self._client.get(url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.get(url, headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("moltbook profile request failed: %s", exc)
            return None
        except ValueError as exc:
            # Non-ASCII keys cannot be encoded into the Authorization header.
            logger.warning("moltbook profile request not sent: %s", exc)
            return None

        if not response.is_success:
            logger.info("moltbook rejected api key status=%s", response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.warning("moltbook returned non-json profile body")
            return None

        profile = parse_profile(payload)
        if profile is None:
            logger.warning("moltbook returned malformed profile payload")
        return profile


def parse_profile(payload: Any) -> MoltbookProfile | None:
    if not isinstance(payload, dict):
        return None
    name = _as_text(payload.get("name"))
    if not name:
        return None

    owner: MoltbookOwner | None = None
    raw_owner = payload.get("owner")
    if isinstance(raw_owner, dict):
        owner = MoltbookOwner(
            x_handle=_as_text(raw_owner.get("x_handle")),
            x_name=_as_text(raw_owner.get("x_name")),
            x_avatar=_as_text(raw_owner.get("x_avatar")),
            x_bio=_as_text(raw_owner.get("x_bio")),
        )

    return MoltbookProfile(
        name=name,
        description=_as_text(payload.get("description")),
        karma=_as_int(payload.get("karma")),
        follower_count=_as_int(payload.get("follower_count")),
        is_claimed=_as_bool(payload.get("is_claimed"), default=False),
        is_active=_as_bool(payload.get("is_active"), default=True),
        created_at=_as_datetime(payload.get("created_at")),
        owner=owner,
    )


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_bool(value: Any, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    return default


def _as_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


@lru_cache
def get_moltbook_client() -> MoltbookClient:
    settings = get_settings()
    return MoltbookClient(
        settings.moltbook_api_base_url,
        timeout_seconds=settings.moltbook_timeout_seconds,
    )
