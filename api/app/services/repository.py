from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from app.core.config import get_settings
from app.services.job_search import JOB_STATUSES, JOB_TYPES, JobSearchParams, build_job_search_sql
from app.services.moltbook import MoltbookProfile

if TYPE_CHECKING:
    from app.services.store import InMemoryRepository

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when an operation violates a uniqueness or state transition rule."""


class ApplicationAlreadyExistsError(RepositoryConflictError):
    """Raised when an agent applies to the same job twice."""


class RepositoryForbiddenError(RepositoryError):
    """Raised when an operation is not permitted for the actor."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


@dataclass(slots=True)
class AgentRecord:
    id: str
    moltbook_name: str
    api_key_hash: str
    created_at: datetime
    profile_updated_at: datetime
    description: str | None = None
    karma: int = 0
    follower_count: int = 0
    is_claimed: bool = False
    is_active: bool = True
    owner_x_handle: str | None = None
    owner_x_name: str | None = None
    owner_x_avatar: str | None = None
    owner_x_bio: str | None = None
    skills: list[str] = field(default_factory=list)
    agent_url: str | None = None
    moltbook_created_at: datetime | None = None

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "moltbook_name": self.moltbook_name,
            "owner_x_avatar": self.owner_x_avatar,
            "karma": self.karma,
        }


JOB_PATCH_FIELDS = {
    "title",
    "description",
    "requirements",
    "compensation",
    "job_type",
    "skills_needed",
    "submolt",
    "status",
    "expires_at",
}
JOB_TEXT_BOUNDS = {
    "title": (3, 200),
    "description": (10, 5000),
    "requirements": (0, 3000),
    "compensation": (0, 500),
}
JOB_OPTIONAL_TEXT_FIELDS = {"requirements", "compensation"}
APPLICATION_DECISION_STATUSES = {"accepted", "rejected"}
APPLICATION_UPDATE_STATUSES = APPLICATION_DECISION_STATUSES | {"withdrawn"}

AGENT_COLUMNS_SQL = """
  id::text as id,
  moltbook_name,
  description,
  karma,
  follower_count,
  is_claimed,
  is_active,
  owner_x_handle,
  owner_x_name,
  owner_x_avatar,
  owner_x_bio,
  skills,
  agent_url,
  api_key_hash,
  created_at,
  profile_updated_at,
  moltbook_created_at
"""

JOB_SELECT_SQL = """
select
  j.id::text as id,
  j.poster_agent_id::text as poster_agent_id,
  j.title,
  j.description,
  j.requirements,
  j.compensation,
  j.job_type::text as job_type,
  j.skills_needed,
  j.submolt,
  j.status::text as status,
  j.application_count,
  j.created_at,
  j.updated_at,
  j.expires_at,
  a.id::text as poster_id,
  a.moltbook_name as poster_moltbook_name,
  a.owner_x_avatar as poster_owner_x_avatar,
  a.karma as poster_karma
from jobs j
join agents a on a.id = j.poster_agent_id
"""

APPLICATION_SELECT_SQL = """
select
  ap.id::text as id,
  ap.job_id::text as job_id,
  ap.applicant_agent_id::text as applicant_agent_id,
  ap.message,
  ap.status::text as status,
  ap.created_at,
  ap.updated_at,
  j.title as job_title,
  j.status::text as job_status,
  j.poster_agent_id::text as job_poster_agent_id,
  a.moltbook_name as applicant_moltbook_name,
  a.owner_x_avatar as applicant_owner_x_avatar,
  a.karma as applicant_karma
from applications ap
join jobs j on j.id = ap.job_id
join agents a on a.id = ap.applicant_agent_id
"""


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # Agents

    async def get_agent_by_hash(self, api_key_hash: str) -> AgentRecord | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"select {AGENT_COLUMNS_SQL} from agents where api_key_hash = $1",
            api_key_hash,
        )
        return self._agent_row_to_record(row) if row else None

    async def get_agent_by_name(self, moltbook_name: str) -> AgentRecord | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"select {AGENT_COLUMNS_SQL} from agents where moltbook_name = $1",
            moltbook_name,
        )
        return self._agent_row_to_record(row) if row else None

    async def upsert_agent(self, *, profile: MoltbookProfile, api_key_hash: str) -> AgentRecord:
        owner = profile.owner
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                insert into agents (
                  moltbook_name,
                  description,
                  karma,
                  follower_count,
                  is_claimed,
                  is_active,
                  owner_x_handle,
                  owner_x_name,
                  owner_x_avatar,
                  owner_x_bio,
                  api_key_hash,
                  moltbook_created_at,
                  profile_updated_at
                )
                values ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, now())
                on conflict (api_key_hash) do update set
                  moltbook_name = excluded.moltbook_name,
                  description = excluded.description,
                  karma = excluded.karma,
                  follower_count = excluded.follower_count,
                  is_claimed = excluded.is_claimed,
                  is_active = excluded.is_active,
                  owner_x_handle = excluded.owner_x_handle,
                  owner_x_name = excluded.owner_x_name,
                  owner_x_avatar = excluded.owner_x_avatar,
                  owner_x_bio = excluded.owner_x_bio,
                  moltbook_created_at = excluded.moltbook_created_at,
                  profile_updated_at = now()
                returning {AGENT_COLUMNS_SQL}
                """,
                profile.name,
                profile.description,
                profile.karma,
                profile.follower_count,
                profile.is_claimed,
                profile.is_active,
                owner.x_handle if owner else None,
                owner.x_name if owner else None,
                owner.x_avatar if owner else None,
                owner.x_bio if owner else None,
                api_key_hash,
                profile.created_at,
            )
        except pg_exc.UniqueViolationError:
            # Moltbook vouched for this key under an existing name: the key was rotated.
            row = await self._rebind_agent_key(profile=profile, api_key_hash=api_key_hash)
        if not row:
            raise RepositoryConflictError("failed to upsert agent")
        return self._agent_row_to_record(row)

    async def _rebind_agent_key(self, *, profile: MoltbookProfile, api_key_hash: str) -> asyncpg.Record | None:
        owner = profile.owner
        pool = await self._get_pool()
        try:
            return await pool.fetchrow(
                f"""
                update agents set
                  api_key_hash = $11,
                  description = $2,
                  karma = $3,
                  follower_count = $4,
                  is_claimed = $5,
                  is_active = $6,
                  owner_x_handle = $7,
                  owner_x_name = $8,
                  owner_x_avatar = $9,
                  owner_x_bio = $10,
                  moltbook_created_at = $12,
                  profile_updated_at = now()
                where moltbook_name = $1
                returning {AGENT_COLUMNS_SQL}
                """,
                profile.name,
                profile.description,
                profile.karma,
                profile.follower_count,
                profile.is_claimed,
                profile.is_active,
                owner.x_handle if owner else None,
                owner.x_name if owner else None,
                owner.x_avatar if owner else None,
                owner.x_bio if owner else None,
                api_key_hash,
                profile.created_at,
            )
        except pg_exc.UniqueViolationError as exc:
            # The new key already belongs to another agent under a different name.
            raise RepositoryConflictError(f"moltbook name already registered: {profile.name}") from exc

    async def update_agent_skills(self, *, agent_id: str, skills: list[str]) -> AgentRecord:
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                f"""
                update agents
                set skills = $2::text[]
                where id = $1::uuid
                returning {AGENT_COLUMNS_SQL}
                """,
                agent_id,
                list(skills),
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("agent not found") from exc
        if not row:
            raise RepositoryNotFoundError("agent not found")
        return self._agent_row_to_record(row)

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
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                try:
                    job_id = await conn.fetchval(
                        """
                        insert into jobs (
                          poster_agent_id,
                          title,
                          description,
                          requirements,
                          compensation,
                          job_type,
                          skills_needed,
                          submolt,
                          expires_at
                        )
                        values ($1::uuid, $2, $3, $4, $5, $6::job_type, $7::text[], $8, $9)
                        returning id::text
                        """,
                        poster_agent_id,
                        title,
                        description,
                        requirements,
                        compensation,
                        job_type,
                        list(skills_needed or []),
                        submolt,
                        expires_at,
                    )
                except pg_exc.CheckViolationError as exc:
                    raise RepositoryValidationError("job fields violate length limits") from exc
                except pg_exc.ForeignKeyViolationError as exc:
                    raise RepositoryNotFoundError("agent not found") from exc
                row = await self._fetch_job_row(conn=conn, job_id=job_id)
        if not row:
            raise RepositoryConflictError("failed to create job")
        return self._job_row_to_dict(row)

    async def get_job(self, job_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await self._fetch_job_row(conn=pool, job_id=job_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if not row:
            raise RepositoryNotFoundError("job not found")
        return self._job_row_to_dict(row)

    async def search_jobs(self, params: JobSearchParams) -> tuple[list[dict[str, Any]], int]:
        pool = await self._get_pool()
        query = build_job_search_sql(params)

        total = await pool.fetchval(
            f"select count(*) from jobs j where {query.where_sql}",
            *query.params,
        )
        limit_token = query.bind(params.limit)
        offset_token = query.bind(params.offset)
        rows = await pool.fetch(
            f"""
            {JOB_SELECT_SQL}
            where {query.where_sql}
            order by {query.order_by_sql}
            limit {limit_token}
            offset {offset_token}
            """,
            *query.params,
        )
        return [self._job_row_to_dict(row) for row in rows], int(total or 0)

    async def list_jobs_by_agent(self, agent_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                f"""
                {JOB_SELECT_SQL}
                where j.poster_agent_id = $1::uuid
                order by j.created_at desc, j.id asc
                """,
                agent_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return []
        return [self._job_row_to_dict(row) for row in rows]

    async def update_job(
        self,
        *,
        job_id: str,
        actor_agent_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        validate_job_changes(changes)
        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    current = await conn.fetchrow(
                        """
                        select poster_agent_id::text as poster_agent_id, status::text as status
                        from jobs
                        where id = $1::uuid
                        for update
                        """,
                        job_id,
                    )
                    if not current:
                        raise RepositoryNotFoundError("job not found")
                    ensure_job_owner(poster_agent_id=current["poster_agent_id"], actor_agent_id=actor_agent_id)
                    if "status" in changes:
                        validate_job_status_transition(from_status=current["status"], to_status=changes["status"])

                    if changes:
                        params: list[Any] = [job_id]
                        assignments: list[str] = []
                        for column in sorted(changes):
                            params.append(changes[column])
                            token = f"${len(params)}"
                            if column == "job_type":
                                token = f"{token}::job_type"
                            elif column == "status":
                                token = f"{token}::job_status"
                            elif column == "skills_needed":
                                token = f"{token}::text[]"
                            assignments.append(f"{column} = {token}")
                        await conn.execute(
                            f"""
                            update jobs
                            set {", ".join(assignments)}, updated_at = now()
                            where id = $1::uuid
                            """,
                            *params,
                        )
                        logger.info("job updated job_id=%s fields=%s", job_id, sorted(changes))

                    row = await self._fetch_job_row(conn=conn, job_id=job_id)
                    if not row:
                        raise RepositoryNotFoundError("job not found")
                    return self._job_row_to_dict(row)
        except pg_exc.CheckViolationError as exc:
            raise RepositoryValidationError("job fields violate length limits") from exc
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc

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
        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    job_row = await conn.fetchrow(
                        """
                        select poster_agent_id::text as poster_agent_id, status::text as status
                        from jobs
                        where id = $1::uuid
                        for update
                        """,
                        job_id,
                    )
                    if not job_row:
                        raise RepositoryNotFoundError("job not found")
                    ensure_can_apply(
                        job_status=job_row["status"],
                        poster_agent_id=job_row["poster_agent_id"],
                        applicant_agent_id=applicant_agent_id,
                    )

                    application_id = await conn.fetchval(
                        """
                        insert into applications (job_id, applicant_agent_id, message)
                        values ($1::uuid, $2::uuid, $3)
                        returning id::text
                        """,
                        job_id,
                        applicant_agent_id,
                        message,
                    )
                    await conn.execute(
                        """
                        update jobs
                        set application_count = application_count + 1
                        where id = $1::uuid
                        """,
                        job_id,
                    )
                    row = await self._fetch_application_row(conn=conn, application_id=application_id)
        except pg_exc.UniqueViolationError as exc:
            raise ApplicationAlreadyExistsError("you have already applied to this job") from exc
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc

        if not row:
            raise RepositoryConflictError("failed to create application")
        return self._application_row_to_dict(row)

    async def get_application(self, application_id: str) -> dict[str, Any]:
        pool = await self._get_pool()
        try:
            row = await self._fetch_application_row(conn=pool, application_id=application_id)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("application not found") from exc
        if not row:
            raise RepositoryNotFoundError("application not found")
        return self._application_row_to_dict(row)

    async def list_applications_for_job(self, *, job_id: str, actor_agent_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        try:
            poster_agent_id = await pool.fetchval(
                "select poster_agent_id::text from jobs where id = $1::uuid",
                job_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("job not found") from exc
        if not poster_agent_id:
            raise RepositoryNotFoundError("job not found")
        if poster_agent_id != actor_agent_id:
            raise RepositoryForbiddenError("only the job poster can view applications")

        rows = await pool.fetch(
            f"""
            {APPLICATION_SELECT_SQL}
            where ap.job_id = $1::uuid
            order by ap.created_at desc, ap.id asc
            """,
            job_id,
        )
        return [self._application_row_to_dict(row) for row in rows]

    async def list_applications_by_agent(self, agent_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        try:
            rows = await pool.fetch(
                f"""
                {APPLICATION_SELECT_SQL}
                where ap.applicant_agent_id = $1::uuid
                order by ap.created_at desc, ap.id asc
                """,
                agent_id,
            )
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return []
        return [self._application_row_to_dict(row) for row in rows]

    async def update_application_status(
        self,
        *,
        application_id: str,
        status: str,
        actor_agent_id: str,
    ) -> dict[str, Any]:
        pool = await self._get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    current = await conn.fetchrow(
                        """
                        select
                          ap.applicant_agent_id::text as applicant_agent_id,
                          j.poster_agent_id::text as poster_agent_id
                        from applications ap
                        join jobs j on j.id = ap.job_id
                        where ap.id = $1::uuid
                        for update of ap
                        """,
                        application_id,
                    )
                    if not current:
                        raise RepositoryNotFoundError("application not found")
                    ensure_can_set_application_status(
                        status=status,
                        applicant_agent_id=current["applicant_agent_id"],
                        poster_agent_id=current["poster_agent_id"],
                        actor_agent_id=actor_agent_id,
                    )

                    await conn.execute(
                        """
                        update applications
                        set status = $2::application_status, updated_at = now()
                        where id = $1::uuid
                        """,
                        application_id,
                        status,
                    )
                    row = await self._fetch_application_row(conn=conn, application_id=application_id)
                    if not row:
                        raise RepositoryNotFoundError("application not found")
                    return self._application_row_to_dict(row)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError) as exc:
            raise RepositoryNotFoundError("application not found") from exc

    async def get_stats(self) -> dict[str, int]:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            select
              (select count(*) from jobs where status = 'open') as open_jobs,
              (select count(*) from agents) as total_agents,
              (select count(*) from applications) as total_applications
            """
        )
        return {
            "open_jobs": int(row["open_jobs"]),
            "total_agents": int(row["total_agents"]),
            "total_applications": int(row["total_applications"]),
        }

    async def _fetch_job_row(
        self,
        *,
        conn: asyncpg.Connection | asyncpg.Pool,
        job_id: str,
    ) -> asyncpg.Record | None:
        return await conn.fetchrow(f"{JOB_SELECT_SQL} where j.id = $1::uuid", job_id)

    async def _fetch_application_row(
        self,
        *,
        conn: asyncpg.Connection | asyncpg.Pool,
        application_id: str,
    ) -> asyncpg.Record | None:
        return await conn.fetchrow(f"{APPLICATION_SELECT_SQL} where ap.id = $1::uuid", application_id)

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("MJ_DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            logger.exception("failed to open database pool")
            raise RepositoryUnavailableError("database unavailable") from exc

    @staticmethod
    def _agent_row_to_record(row: asyncpg.Record) -> AgentRecord:
        return AgentRecord(
            id=row["id"],
            moltbook_name=row["moltbook_name"],
            description=row["description"],
            karma=int(row["karma"] or 0),
            follower_count=int(row["follower_count"] or 0),
            is_claimed=bool(row["is_claimed"]),
            is_active=bool(row["is_active"]),
            owner_x_handle=row["owner_x_handle"],
            owner_x_name=row["owner_x_name"],
            owner_x_avatar=row["owner_x_avatar"],
            owner_x_bio=row["owner_x_bio"],
            skills=list(row["skills"] or []),
            agent_url=row["agent_url"],
            api_key_hash=row["api_key_hash"],
            created_at=row["created_at"],
            profile_updated_at=row["profile_updated_at"],
            moltbook_created_at=row["moltbook_created_at"],
        )

    @staticmethod
    def _job_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "poster_agent_id": row["poster_agent_id"],
            "title": row["title"],
            "description": row["description"],
            "requirements": row["requirements"],
            "compensation": row["compensation"],
            "job_type": row["job_type"],
            "skills_needed": list(row["skills_needed"] or []),
            "submolt": row["submolt"],
            "status": row["status"],
            "application_count": int(row["application_count"] or 0),
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "expires_at": row["expires_at"],
            "poster_agent": {
                "id": row["poster_id"],
                "moltbook_name": row["poster_moltbook_name"],
                "owner_x_avatar": row["poster_owner_x_avatar"],
                "karma": int(row["poster_karma"] or 0),
            },
        }

    @staticmethod
    def _application_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "job_id": row["job_id"],
            "applicant_agent_id": row["applicant_agent_id"],
            "message": row["message"],
            "status": row["status"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
            "job": {
                "id": row["job_id"],
                "title": row["job_title"],
                "status": row["job_status"],
                "poster_agent_id": row["job_poster_agent_id"],
            },
            "applicant_agent": {
                "id": row["applicant_agent_id"],
                "moltbook_name": row["applicant_moltbook_name"],
                "owner_x_avatar": row["applicant_owner_x_avatar"],
                "karma": int(row["applicant_karma"] or 0),
            },
        }


def validate_job_text(fields: dict[str, Any]) -> None:
    # Mirrors the char_length checks on the jobs table.
    for column, (minimum, maximum) in JOB_TEXT_BOUNDS.items():
        if column not in fields:
            continue
        value = fields[column]
        if value is None:
            if column in JOB_OPTIONAL_TEXT_FIELDS:
                continue
            raise RepositoryValidationError(f"{column} is required")
        if not minimum <= len(value) <= maximum:
            raise RepositoryValidationError(f"{column} must be between {minimum} and {maximum} characters")


def validate_job_changes(changes: dict[str, Any]) -> None:
    unknown = set(changes) - JOB_PATCH_FIELDS
    if unknown:
        raise RepositoryValidationError(f"unsupported job fields: {sorted(unknown)}")
    if "job_type" in changes and changes["job_type"] not in JOB_TYPES:
        raise RepositoryValidationError(f"unsupported job_type: {changes['job_type']}")
    if "status" in changes and changes["status"] not in JOB_STATUSES:
        raise RepositoryValidationError(f"unsupported job status: {changes['status']}")
    validate_job_text(changes)


def ensure_job_owner(*, poster_agent_id: str, actor_agent_id: str) -> None:
    if poster_agent_id != actor_agent_id:
        raise RepositoryForbiddenError("not authorized to modify this job")


def validate_job_status_transition(*, from_status: str, to_status: str) -> None:
    if to_status == from_status:
        return
    if from_status == "cancelled":
        raise RepositoryConflictError(f"invalid job status transition: {from_status} -> {to_status}")


def ensure_can_apply(*, job_status: str, poster_agent_id: str, applicant_agent_id: str) -> None:
    if job_status != "open":
        raise RepositoryValidationError("this job is no longer accepting applications")
    if poster_agent_id == applicant_agent_id:
        raise RepositoryValidationError("you cannot apply to your own job")


def ensure_can_set_application_status(
    *,
    status: str,
    applicant_agent_id: str,
    poster_agent_id: str,
    actor_agent_id: str,
) -> None:
    if status not in APPLICATION_UPDATE_STATUSES:
        raise RepositoryValidationError(f"unsupported application status: {status}")
    if status == "withdrawn":
        if applicant_agent_id != actor_agent_id:
            raise RepositoryForbiddenError("only the applicant can withdraw")
        return
    if poster_agent_id != actor_agent_id:
        raise RepositoryForbiddenError("only the job poster can accept or reject applications")


@lru_cache
def get_repository() -> PostgresRepository | InMemoryRepository:
    settings = get_settings()
    if settings.storage_backend == "memory":
        from app.services.store import InMemoryRepository

        return InMemoryRepository()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
