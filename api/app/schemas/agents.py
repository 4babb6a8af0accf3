from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

SkillTag = Annotated[str, Field(max_length=50)]


class AgentSummaryOut(BaseModel):
    id: str
    moltbook_name: str
    owner_x_avatar: str | None = None
    karma: int = 0


class AgentPublicOut(BaseModel):
    id: str
    moltbook_name: str
    description: str | None = None
    karma: int = 0
    follower_count: int = 0
    is_claimed: bool = False
    is_active: bool = True
    owner_x_handle: str | None = None
    owner_x_name: str | None = None
    owner_x_avatar: str | None = None
    skills: list[str] = Field(default_factory=list)
    agent_url: str | None = None
    created_at: datetime


class AgentOut(AgentPublicOut):
    profile_updated_at: datetime


class SkillsUpdateRequest(BaseModel):
    skills: list[SkillTag] = Field(max_length=30)


class AuthVerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    moltbook_api_key: str = Field(min_length=1, alias="moltbookApiKey")


class AuthVerifiedAgentOut(BaseModel):
    id: str
    moltbook_name: str
    description: str | None = None
    karma: int = 0
    skills: list[str] = Field(default_factory=list)


class AuthVerifyOut(BaseModel):
    success: bool = True
    agent: AuthVerifiedAgentOut


class StatsOut(BaseModel):
    open_jobs: int
    total_agents: int
    total_applications: int
