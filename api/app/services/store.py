from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from app.services.job_search import JOB_TYPES, JobSearchParams, job_matches, sort_jobs
from app.services.moltbook import MoltbookProfile
from app.services.repository import (
    AgentRecord,
    ApplicationAlreadyExistsError,
    RepositoryConflictError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryValidationError,
    ensure_can_apply,
    ensure_can_set_application_status,
    ensure_job_owner,
    validate_job_changes,
    validate_job_status_transition,
    validate_job_text,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRepository:
    """Process-local store with the same contract as ``PostgresRepository``.

    Used for local development (``MJ_STORAGE_BACKEND=memory``) and tests.
    Records are copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self, *, now: Callable[[], datetime] = _utcnow) -> None:
        self._now = now
        self.agents: dict[str, AgentRecord] = {}
        self.jobs: dict[str, dict[str, Any]] = {}
        self.applications: dict[str, dict[str, Any]] = {}
        self._agent_ids_by_hash: dict[str, str] = {}
        self._agent_ids_by_name: dict[str, str] = {}
        self._application_ids_by_pair: dict[tuple[str, str], str] = {}

    async def close(self) -> None:
        return None

    # Agents

    async def get_agent_by_hash(self, api_key_hash: str) -> AgentRecord | None:
        agent_id = self._agent_ids_by_hash.get(api_key_hash)
        return self._copy_agent(agent_id)

    async def get_agent_by_name(self, moltbook_name: str) -> AgentRecord | None:
        agent_id = self._agent_ids_by_name.get(moltbook_name)
        return self._copy_agent(agent_id)

    async def upsert_agent(self, *, profile: MoltbookProfile, api_key_hash: str) -> AgentRecord:
        existing_id = self._agent_ids_by_hash.get(api_key_hash)
        name_owner_id = self._agent_ids_by_name.get(profile.name)
        if name_owner_id is not None and name_owner_id != existing_id:
            if existing_id is not None:
                # The new key already belongs to another agent under a different name.
                raise RepositoryConflictError(f"moltbook name already registered: {profile.name}")
            # Moltbook vouched for this key under an existing name: the key was rotated.
            stale_hash = self.agents[name_owner_id].api_key_hash
            self._agent_ids_by_hash.pop(stale_hash, None)
            existing_id = name_owner_id

        now = self._now()
        owner = profile.owner
        fields = {
            "moltbook_name": profile.name,
            "description": profile.description,
            "karma": profile.karma,
            "follower_count": profile.follower_count,
            "is_claimed": profile.is_claimed,
            "is_active": profile.is_active,
            "owner_x_handle": owner.x_handle if owner else None,
            "owner_x_name": owner.x_name if owner else None,
            "owner_x_avatar": owner.x_avatar if owner else None,
            "owner_x_bio": owner.x_bio if owner else None,
            "moltbook_created_at": profile.created_at,
            "profile_updated_at": now,
        }

        if existing_id is not None:
            current = self.agents[existing_id]
            if current.moltbook_name != profile.name:
                self._agent_ids_by_name.pop(current.moltbook_name, None)
            agent = replace(current, api_key_hash=api_key_hash, **fields)
        else:
            agent = AgentRecord(
                id=str(uuid4()),
                api_key_hash=api_key_hash,
                created_at=now,
                skills=[],
                agent_url=None,
                **fields,
            )

        self.agents[agent.id] = agent
        self._agent_ids_by_hash[api_key_hash] = agent.id
        self._agent_ids_by_name[agent.moltbook_name] = agent.id
        return self._copy_agent(agent.id)

    async def update_agent_skills(self, *, agent_id: str, skills: list[str]) -> AgentRecord:
        current = self.agents.get(agent_id)
        if current is None:
            raise RepositoryNotFoundError("agent not found")
        self.agents[agent_id] = replace(current, skills=list(skills))
        return self._copy_agent(agent_id)

    # Jobs

    async def create_job(
        self,
        *,
        poster_agent_id: str,
        title: str,
        description: str,
        requirements: str | None = None,
        compensation: str | None = None,
        job_type: str = "contract",
        skills_needed: list[str] | None = None,
        submolt: str = "general",
        expires_at: datetime | None = None,
    ) -> dict[str, Any]:
        if job_type not in JOB_TYPES:
            raise RepositoryValidationError(f"unsupported job_type: {job_type}")
        validate_job_text(
            {
                "title": title,
                "description": description,
                "requirements": requirements,
                "compensation": compensation,
            }
        )
        if poster_agent_id not in self.agents:
            raise RepositoryNotFoundError("agent not found")

        now = self._now()
        job = {
            "id": str(uuid4()),
            "poster_agent_id": poster_agent_id,
            "title": title,
            "description": description,
            "requirements": requirements,
            "compensation": compensation,
            "job_type": job_type,
            "skills_needed": list(skills_needed or []),
            "submolt": submolt,
            "status": "open",
            "application_count": 0,
            "created_at": now,
            "updated_at": now,
            "expires_at": expires_at,
        }
        self.jobs[job["id"]] = job
        return self._job_with_agent(job)

    async def get_job(self, job_id: str) -> dict[str, Any]:
        job = self.jobs.get(job_id)
        if job is None:
            raise RepositoryNotFoundError("job not found")
        return self._job_with_agent(job)

    async def search_jobs(self, params: JobSearchParams) -> tuple[list[dict[str, Any]], int]:
        matches = sort_jobs((job for job in self.jobs.values() if job_matches(job, params)), params.sort)
        page = matches[params.offset : params.offset + params.limit]
        return [self._job_with_agent(job) for job in page], len(matches)

    async def list_jobs_by_agent(self, agent_id: str) -> list[dict[str, Any]]:
        owned = (job for job in self.jobs.values() if job["poster_agent_id"] == agent_id)
        return [self._job_with_agent(job) for job in sort_jobs(owned, "newest")]

    async def update_job(
        self,
        *,
        job_id: str,
        actor_agent_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        validate_job_changes(changes)
        job = self.jobs.get(job_id)
        if job is None:
            raise RepositoryNotFoundError("job not found")
        ensure_job_owner(poster_agent_id=job["poster_agent_id"], actor_agent_id=actor_agent_id)
        if "status" in changes:
            validate_job_status_transition(from_status=job["status"], to_status=changes["status"])

        if changes:
            for key, value in changes.items():
                job[key] = list(value) if key == "skills_needed" else value
            job["updated_at"] = self._now()
        return self._job_with_agent(job)

    async def cancel_job(self, *, job_id: str, actor_agent_id: str) -> dict[str, Any]:
        return await self.update_job(job_id=job_id, actor_agent_id=actor_agent_id, changes={"status": "cancelled"})

    # Applications

    async def create_application(
        self,
        *,
        job_id: str,
        applicant_agent_id: str,
        message: str | None,
    ) -> dict[str, Any]:
        job = self.jobs.get(job_id)
        if job is None:
            raise RepositoryNotFoundError("job not found")
        ensure_can_apply(
            job_status=job["status"],
            poster_agent_id=job["poster_agent_id"],
            applicant_agent_id=applicant_agent_id,
        )
        if applicant_agent_id not in self.agents:
            raise RepositoryNotFoundError("agent not found")
        pair = (job_id, applicant_agent_id)
        if pair in self._application_ids_by_pair:
            raise ApplicationAlreadyExistsError("you have already applied to this job")

        now = self._now()
        application = {
            "id": str(uuid4()),
            "job_id": job_id,
            "applicant_agent_id": applicant_agent_id,
            "message": message,
            "status": "pending",
            "created_at": now,
            "updated_at": now,
        }
        self.applications[application["id"]] = application
        self._application_ids_by_pair[pair] = application["id"]
        job["application_count"] += 1
        return self._application_with_details(application)

    async def get_application(self, application_id: str) -> dict[str, Any]:
        application = self.applications.get(application_id)
        if application is None:
            raise RepositoryNotFoundError("application not found")
        return self._application_with_details(application)

    async def list_applications_for_job(self, *, job_id: str, actor_agent_id: str) -> list[dict[str, Any]]:
        job = self.jobs.get(job_id)
        if job is None:
            raise RepositoryNotFoundError("job not found")
        if job["poster_agent_id"] != actor_agent_id:
            raise RepositoryForbiddenError("only the job poster can view applications")
        rows = [application for application in self.applications.values() if application["job_id"] == job_id]
        return [self._application_with_details(application) for application in self._newest_first(rows)]

    async def list_applications_by_agent(self, agent_id: str) -> list[dict[str, Any]]:
        rows = [
            application
            for application in self.applications.values()
            if application["applicant_agent_id"] == agent_id
        ]
        return [self._application_with_details(application) for application in self._newest_first(rows)]

    async def update_application_status(
        self,
        *,
        application_id: str,
        status: str,
        actor_agent_id: str,
    ) -> dict[str, Any]:
        application = self.applications.get(application_id)
        if application is None:
            raise RepositoryNotFoundError("application not found")
        job = self.jobs[application["job_id"]]
        ensure_can_set_application_status(
            status=status,
            applicant_agent_id=application["applicant_agent_id"],
            poster_agent_id=job["poster_agent_id"],
            actor_agent_id=actor_agent_id,
        )
        application["status"] = status
        application["updated_at"] = self._now()
        return self._application_with_details(application)

    async def get_stats(self) -> dict[str, int]:
        return {
            "open_jobs": sum(1 for job in self.jobs.values() if job["status"] == "open"),
            "total_agents": len(self.agents),
            "total_applications": len(self.applications),
        }

    def _copy_agent(self, agent_id: str | None) -> AgentRecord | None:
        if agent_id is None:
            return None
        agent = self.agents.get(agent_id)
        if agent is None:
            return None
        return replace(agent, skills=list(agent.skills))

    def _job_with_agent(self, job: dict[str, Any]) -> dict[str, Any]:
        poster = self.agents[job["poster_agent_id"]]
        row = dict(job)
        row["skills_needed"] = list(job["skills_needed"])
        row["poster_agent"] = poster.summary()
        return row

    def _application_with_details(self, application: dict[str, Any]) -> dict[str, Any]:
        job = self.jobs[application["job_id"]]
        applicant = self.agents[application["applicant_agent_id"]]
        row = dict(application)
        row["job"] = {
            "id": job["id"],
            "title": job["title"],
            "status": job["status"],
            "poster_agent_id": job["poster_agent_id"],
        }
        row["applicant_agent"] = applicant.summary()
        return row

    @staticmethod
    def _newest_first(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        rows = sorted(rows, key=lambda row: row["id"])
        return sorted(rows, key=lambda row: row["created_at"], reverse=True)
