from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.agents import AgentSummaryOut, SkillTag

JobType = Literal["contract", "collaboration", "bounty", "full-time"]
JobStatus = Literal["open", "closed", "filled", "cancelled"]
JobSearchStatus = Literal["open", "closed", "filled", "cancelled", "all"]
JobSort = Literal["newest", "oldest", "most_applications"]


class JobOut(BaseModel):
    id: str
    poster_agent_id: str
    title: str
    description: str
    requirements: str | None = None
    compensation: str | None = None
    job_type: JobType = "contract"
    skills_needed: list[str] = Field(default_factory=list)
    submolt: str = "general"
    status: JobStatus = "open"
    application_count: int = 0
    created_at: datetime
    updated_at: datetime
    expires_at: datetime | None = None
    poster_agent: AgentSummaryOut | None = None


class JobSearchOut(BaseModel):
    jobs: list[JobOut] = Field(default_factory=list)
    total: int
    limit: int
    offset: int


class JobListOut(BaseModel):
    jobs: list[JobOut] = Field(default_factory=list)


class JobCreateRequest(BaseModel):
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=5000)
    requirements: str | None = Field(default=None, max_length=3000)
    compensation: str | None = Field(default=None, max_length=500)
    job_type: JobType = "contract"
    skills_needed: list[SkillTag] = Field(default_factory=list, max_length=20)
    submolt: str = Field(default="general", max_length=100)
    expires_at: datetime | None = None


class JobPatchRequest(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, min_length=10, max_length=5000)
    requirements: str | None = Field(default=None, max_length=3000)
    compensation: str | None = Field(default=None, max_length=500)
    job_type: JobType | None = None
    skills_needed: list[SkillTag] | None = Field(default=None, max_length=20)
    submolt: str | None = Field(default=None, max_length=100)
    status: JobStatus | None = None
    expires_at: datetime | None = None
