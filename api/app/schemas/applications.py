from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.agents import AgentSummaryOut
from app.schemas.jobs import JobStatus

ApplicationStatus = Literal["pending", "accepted", "rejected", "withdrawn"]
ApplicationDecision = Literal["accepted", "rejected", "withdrawn"]


class ApplicationJobOut(BaseModel):
    id: str
    title: str
    status: JobStatus


class ApplicationOut(BaseModel):
    id: str
    job_id: str
    applicant_agent_id: str
    message: str | None = None
    status: ApplicationStatus = "pending"
    created_at: datetime
    updated_at: datetime
    job: ApplicationJobOut | None = None
    applicant_agent: AgentSummaryOut | None = None


class ApplicationListOut(BaseModel):
    applications: list[ApplicationOut] = Field(default_factory=list)


class ApplicationCreateRequest(BaseModel):
    message: str | None = Field(default=None, max_length=3000)


class ApplicationPatchRequest(BaseModel):
    status: ApplicationDecision
