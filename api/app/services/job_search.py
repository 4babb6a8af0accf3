from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

JOB_TYPES = {"contract", "collaboration", "bounty", "full-time"}
JOB_STATUSES = {"open", "closed", "filled", "cancelled"}
JOB_SORTS = {"newest", "oldest", "most_applications"}
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass(slots=True)
class JobSearchParams:
    """Normalized job search filters.

    ``status=None`` means every status; callers that want the public board
    pass ``"open"`` explicitly.
    """

    status: str | None = None
    job_type: str | None = None
    submolt: str | None = None
    skills: frozenset[str] = field(default_factory=frozenset)
    q: str | None = None
    sort: str = "newest"
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    def __post_init__(self) -> None:
        self.status = _coerce_text(self.status)
        self.job_type = _coerce_text(self.job_type)
        self.submolt = _coerce_text(self.submolt)
        self.q = _coerce_text(self.q)
        self.skills = frozenset(skill for skill in self.skills if skill)
        if self.sort not in JOB_SORTS:
            self.sort = "newest"
        self.limit = min(max(int(self.limit), 1), MAX_LIMIT)
        self.offset = max(int(self.offset), 0)


@dataclass(slots=True)
class JobSearchSql:
    where_sql: str
    order_by_sql: str
    params: list[Any]

    def bind(self, value: Any) -> str:
        self.params.append(value)
        return f"${len(self.params)}"


def parse_skills_param(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(chunk.strip() for chunk in raw.split(",") if chunk.strip())


def job_matches(job: dict[str, Any], params: JobSearchParams) -> bool:
    if params.status and job["status"] != params.status:
        return False
    if params.job_type and job["job_type"] != params.job_type:
        return False
    if params.submolt and job["submolt"] != params.submolt:
        return False
    if params.skills and not params.skills.intersection(job["skills_needed"]):
        return False
    if params.q:
        needle = params.q.lower()
        title = (job.get("title") or "").lower()
        description = (job.get("description") or "").lower()
        if needle not in title and needle not in description:
            return False
    return True


def sort_jobs(jobs: Iterable[dict[str, Any]], sort: str) -> list[dict[str, Any]]:
    # Stable sorts: tie-break first, primary key last.
    ordered = sorted(jobs, key=lambda job: job["id"])
    if sort == "oldest":
        return sorted(ordered, key=lambda job: _timestamp(job["created_at"]))
    ordered = sorted(ordered, key=lambda job: _timestamp(job["created_at"]), reverse=True)
    if sort == "most_applications":
        ordered = sorted(ordered, key=lambda job: int(job["application_count"]), reverse=True)
    return ordered


def build_job_search_sql(params: JobSearchParams, *, alias: str = "j") -> JobSearchSql:
    query = JobSearchSql(where_sql="true", order_by_sql="", params=[])
    conditions: list[str] = []

    if params.status:
        conditions.append(f"{alias}.status = {query.bind(params.status)}::job_status")
    if params.job_type:
        conditions.append(f"{alias}.job_type = {query.bind(params.job_type)}::job_type")
    if params.submolt:
        conditions.append(f"{alias}.submolt = {query.bind(params.submolt)}")
    if params.skills:
        conditions.append(f"{alias}.skills_needed && {query.bind(sorted(params.skills))}::text[]")
    if params.q:
        token = query.bind(f"%{escape_like(params.q)}%")
        conditions.append(f"({alias}.title ilike {token} or {alias}.description ilike {token})")

    if conditions:
        query.where_sql = " and ".join(conditions)

    if params.sort == "oldest":
        query.order_by_sql = f"{alias}.created_at asc, {alias}.id asc"
    elif params.sort == "most_applications":
        query.order_by_sql = f"{alias}.application_count desc, {alias}.created_at desc, {alias}.id asc"
    else:
        query.order_by_sql = f"{alias}.created_at desc, {alias}.id asc"
    return query


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    stripped = str(value).strip()
    return stripped or None


def _timestamp(value: datetime) -> float:
    return value.timestamp()
