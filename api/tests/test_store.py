from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.services.job_search import JobSearchParams
from app.services.moltbook import MoltbookOwner, MoltbookProfile
from app.services.repository import (
    ApplicationAlreadyExistsError,
    RepositoryConflictError,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)
from app.services.store import InMemoryRepository


class TickingClock:
    """Returns a strictly increasing timestamp on every call."""

    def __init__(self) -> None:
        self.current = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


def _repository() -> InMemoryRepository:
    return InMemoryRepository(now=TickingClock())


async def _agent(repository: InMemoryRepository, name: str):
    return await repository.upsert_agent(profile=MoltbookProfile(name=name), api_key_hash=f"hash-{name}")


def test_upsert_is_idempotent_per_key_hash() -> None:
    repository = _repository()

    async def run() -> None:
        first = await repository.upsert_agent(profile=MoltbookProfile(name="bot1", karma=1), api_key_hash="h1")
        second = await repository.upsert_agent(
            profile=MoltbookProfile(
                name="bot1",
                karma=7,
                owner=MoltbookOwner(x_handle="owner", x_name=None, x_avatar="https://x/a.png", x_bio=None),
            ),
            api_key_hash="h1",
        )

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.profile_updated_at > first.profile_updated_at
        assert second.karma == 7
        assert second.owner_x_avatar == "https://x/a.png"
        assert len(repository.agents) == 1

    asyncio.run(run())


def test_upsert_preserves_locally_managed_fields() -> None:
    repository = _repository()

    async def run() -> None:
        agent = await _agent(repository, "bot1")
        await repository.update_agent_skills(agent_id=agent.id, skills=["python"])

        refreshed = await repository.upsert_agent(profile=MoltbookProfile(name="bot1", karma=3), api_key_hash="hash-bot1")

        assert refreshed.skills == ["python"]
        assert refreshed.agent_url is None
        assert (await repository.get_agent_by_name("bot1")).karma == 3

    asyncio.run(run())


def test_upsert_rebinds_rotated_key_to_existing_name() -> None:
    repository = _repository()

    async def run() -> None:
        original = await _agent(repository, "bot1")
        await repository.update_agent_skills(agent_id=original.id, skills=["python"])

        rotated = await repository.upsert_agent(profile=MoltbookProfile(name="bot1", karma=9), api_key_hash="new-hash")

        assert rotated.id == original.id
        assert rotated.api_key_hash == "new-hash"
        assert rotated.karma == 9
        assert rotated.skills == ["python"]
        assert await repository.get_agent_by_hash("hash-bot1") is None
        assert (await repository.get_agent_by_hash("new-hash")).id == original.id
        assert len(repository.agents) == 1

    asyncio.run(run())


def test_upsert_rejects_name_owned_by_another_agent() -> None:
    repository = _repository()

    async def run() -> None:
        await _agent(repository, "bot1")
        await _agent(repository, "bot2")
        with pytest.raises(RepositoryConflictError):
            await repository.upsert_agent(profile=MoltbookProfile(name="bot1"), api_key_hash="hash-bot2")
        assert (await repository.get_agent_by_hash("hash-bot2")).moltbook_name == "bot2"

    asyncio.run(run())


def test_returned_agents_do_not_share_state_with_store() -> None:
    repository = _repository()

    async def run() -> None:
        agent = await _agent(repository, "bot1")
        agent.skills.append("leaked")

        stored = await repository.get_agent_by_hash("hash-bot1")
        assert stored.skills == []

    asyncio.run(run())


def test_search_filters_by_skill_and_orders_newest_first() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        first = await repository.create_job(
            poster_agent_id=poster.id, title="Scraper", description="Needs doing soon", skills_needed=["python", "scraping"]
        )
        await repository.create_job(poster_agent_id=poster.id, title="Frontend", description="Needs doing soon", skills_needed=["react"])
        third = await repository.create_job(
            poster_agent_id=poster.id, title="ETL", description="Needs doing soon", skills_needed=["python"]
        )

        rows, total = await repository.search_jobs(
            JobSearchParams(status="open", skills=frozenset({"python"}), sort="newest", limit=2, offset=0)
        )

        assert total == 2
        assert [row["id"] for row in rows] == [third["id"], first["id"]]
        assert rows[0]["poster_agent"] == {
            "id": poster.id,
            "moltbook_name": "poster",
            "owner_x_avatar": None,
            "karma": 0,
        }

    asyncio.run(run())


def test_search_sort_orders() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        applicant = await _agent(repository, "applicant")
        older = await repository.create_job(poster_agent_id=poster.id, title="Old", description="Needs doing soon")
        newer = await repository.create_job(poster_agent_id=poster.id, title="New", description="Needs doing soon")
        await repository.create_application(job_id=older["id"], applicant_agent_id=applicant.id, message=None)

        oldest, _ = await repository.search_jobs(JobSearchParams(sort="oldest"))
        popular, _ = await repository.search_jobs(JobSearchParams(sort="most_applications"))
        fallback, _ = await repository.search_jobs(JobSearchParams(sort="bogus"))

        assert [row["id"] for row in oldest] == [older["id"], newer["id"]]
        assert [row["id"] for row in popular] == [older["id"], newer["id"]]
        assert popular[0]["application_count"] == 1
        assert [row["id"] for row in fallback] == [newer["id"], older["id"]]

    asyncio.run(run())


def test_search_pagination_reports_full_count() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        for index in range(5):
            await repository.create_job(poster_agent_id=poster.id, title=f"Job {index}", description="Needs doing soon")

        page, total = await repository.search_jobs(JobSearchParams(limit=2, offset=2))
        beyond, beyond_total = await repository.search_jobs(JobSearchParams(limit=2, offset=10))

        assert total == 5
        assert [row["title"] for row in page] == ["Job 2", "Job 1"]
        assert beyond == []
        assert beyond_total == 5

    asyncio.run(run())


def test_search_without_status_returns_every_status() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        open_job = await repository.create_job(poster_agent_id=poster.id, title="Open", description="Needs doing soon")
        closed_job = await repository.create_job(poster_agent_id=poster.id, title="Closed", description="Needs doing soon")
        await repository.update_job(job_id=closed_job["id"], actor_agent_id=poster.id, changes={"status": "closed"})

        _, everything = await repository.search_jobs(JobSearchParams())
        open_rows, open_total = await repository.search_jobs(JobSearchParams(status="open"))

        assert everything == 2
        assert open_total == 1
        assert open_rows[0]["id"] == open_job["id"]

    asyncio.run(run())


def test_search_text_type_and_submolt_filters() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        await repository.create_job(
            poster_agent_id=poster.id,
            title="Data wrangling",
            description="Clean up a CSV export",
            job_type="bounty",
            submolt="data",
        )
        await repository.create_job(poster_agent_id=poster.id, title="Chatbot", description="Build a bot")

        by_description, _ = await repository.search_jobs(JobSearchParams(q="csv"))
        by_type, _ = await repository.search_jobs(JobSearchParams(job_type="bounty"))
        by_submolt, _ = await repository.search_jobs(JobSearchParams(submolt="general"))

        assert [row["title"] for row in by_description] == ["Data wrangling"]
        assert [row["title"] for row in by_type] == ["Data wrangling"]
        assert [row["title"] for row in by_submolt] == ["Chatbot"]

    asyncio.run(run())


def test_create_job_defaults_and_validation() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        job = await repository.create_job(poster_agent_id=poster.id, title="Task", description="Needs doing soon")

        assert job["status"] == "open"
        assert job["job_type"] == "contract"
        assert job["submolt"] == "general"
        assert job["skills_needed"] == []
        assert job["application_count"] == 0

        with pytest.raises(RepositoryValidationError):
            await repository.create_job(poster_agent_id=poster.id, title="Task", description="Needs doing soon", job_type="gig")
        with pytest.raises(RepositoryNotFoundError):
            await repository.get_job("missing")

    asyncio.run(run())


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "ab"},
        {"title": "x" * 201},
        {"description": "too short"},
        {"description": "x" * 5001},
        {"requirements": "x" * 3001},
        {"compensation": "x" * 501},
    ],
)
def test_create_job_enforces_text_bounds(overrides: dict[str, str]) -> None:
    repository = _repository()
    fields = {"title": "Task", "description": "Needs doing soon", **overrides}

    async def run() -> None:
        poster = await _agent(repository, "poster")
        with pytest.raises(RepositoryValidationError):
            await repository.create_job(poster_agent_id=poster.id, **fields)
        assert repository.jobs == {}

    asyncio.run(run())


def test_update_job_enforces_text_bounds() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        job = await repository.create_job(
            poster_agent_id=poster.id, title="Task", description="Needs doing soon", requirements="Python"
        )

        with pytest.raises(RepositoryValidationError):
            await repository.update_job(job_id=job["id"], actor_agent_id=poster.id, changes={"description": "short"})
        with pytest.raises(RepositoryValidationError):
            await repository.update_job(job_id=job["id"], actor_agent_id=poster.id, changes={"title": None})

        cleared = await repository.update_job(
            job_id=job["id"], actor_agent_id=poster.id, changes={"requirements": None}
        )
        assert cleared["requirements"] is None
        assert cleared["description"] == "Needs doing soon"

    asyncio.run(run())


def test_duplicate_application_conflicts_and_count_tracks_applications() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        applicant = await _agent(repository, "applicant")
        job = await repository.create_job(poster_agent_id=poster.id, title="Task", description="Needs doing soon")

        application = await repository.create_application(
            job_id=job["id"], applicant_agent_id=applicant.id, message="hire me"
        )
        assert application["status"] == "pending"
        assert application["job"]["title"] == "Task"
        assert application["applicant_agent"]["moltbook_name"] == "applicant"

        with pytest.raises(ApplicationAlreadyExistsError):
            await repository.create_application(job_id=job["id"], applicant_agent_id=applicant.id, message=None)

        assert (await repository.get_job(job["id"]))["application_count"] == 1

    asyncio.run(run())


def test_cannot_apply_to_own_or_closed_job() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        applicant = await _agent(repository, "applicant")
        job = await repository.create_job(poster_agent_id=poster.id, title="Task", description="Needs doing soon")

        with pytest.raises(RepositoryValidationError, match="your own job"):
            await repository.create_application(job_id=job["id"], applicant_agent_id=poster.id, message=None)

        await repository.update_job(job_id=job["id"], actor_agent_id=poster.id, changes={"status": "filled"})
        with pytest.raises(RepositoryValidationError, match="no longer accepting"):
            await repository.create_application(job_id=job["id"], applicant_agent_id=applicant.id, message=None)

    asyncio.run(run())


def test_only_poster_can_modify_job_or_view_applications() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        other = await _agent(repository, "other")
        job = await repository.create_job(poster_agent_id=poster.id, title="Task", description="Needs doing soon")

        with pytest.raises(RepositoryForbiddenError):
            await repository.update_job(job_id=job["id"], actor_agent_id=other.id, changes={"title": "Renamed"})
        with pytest.raises(RepositoryForbiddenError):
            await repository.cancel_job(job_id=job["id"], actor_agent_id=other.id)
        with pytest.raises(RepositoryForbiddenError):
            await repository.list_applications_for_job(job_id=job["id"], actor_agent_id=other.id)

        updated = await repository.update_job(
            job_id=job["id"], actor_agent_id=poster.id, changes={"title": "Renamed", "skills_needed": ["go"]}
        )
        assert updated["title"] == "Renamed"
        assert updated["skills_needed"] == ["go"]
        assert updated["updated_at"] > job["updated_at"]

    asyncio.run(run())


def test_update_job_rejects_unknown_fields() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        job = await repository.create_job(poster_agent_id=poster.id, title="Task", description="Needs doing soon")
        with pytest.raises(RepositoryValidationError):
            await repository.update_job(
                job_id=job["id"], actor_agent_id=poster.id, changes={"application_count": 99}
            )

    asyncio.run(run())


def test_cancelled_job_cannot_be_reopened() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        job = await repository.create_job(poster_agent_id=poster.id, title="Task", description="Needs doing soon")
        cancelled = await repository.cancel_job(job_id=job["id"], actor_agent_id=poster.id)
        assert cancelled["status"] == "cancelled"

        with pytest.raises(RepositoryConflictError):
            await repository.update_job(job_id=job["id"], actor_agent_id=poster.id, changes={"status": "open"})

    asyncio.run(run())


def test_application_status_permissions() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        applicant = await _agent(repository, "applicant")
        job = await repository.create_job(poster_agent_id=poster.id, title="Task", description="Needs doing soon")
        application = await repository.create_application(
            job_id=job["id"], applicant_agent_id=applicant.id, message=None
        )

        with pytest.raises(RepositoryForbiddenError):
            await repository.update_application_status(
                application_id=application["id"], status="accepted", actor_agent_id=applicant.id
            )
        with pytest.raises(RepositoryForbiddenError):
            await repository.update_application_status(
                application_id=application["id"], status="withdrawn", actor_agent_id=poster.id
            )
        with pytest.raises(RepositoryValidationError):
            await repository.update_application_status(
                application_id=application["id"], status="pending", actor_agent_id=poster.id
            )

        accepted = await repository.update_application_status(
            application_id=application["id"], status="accepted", actor_agent_id=poster.id
        )
        assert accepted["status"] == "accepted"

        listed = await repository.list_applications_for_job(job_id=job["id"], actor_agent_id=poster.id)
        mine = await repository.list_applications_by_agent(applicant.id)
        assert [row["id"] for row in listed] == [application["id"]]
        assert [row["status"] for row in mine] == ["accepted"]

    asyncio.run(run())


def test_list_jobs_by_agent_includes_every_status() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        other = await _agent(repository, "other")
        first = await repository.create_job(poster_agent_id=poster.id, title="Job A", description="Needs doing soon")
        second = await repository.create_job(poster_agent_id=poster.id, title="Job B", description="Needs doing soon")
        await repository.create_job(poster_agent_id=other.id, title="Job C", description="Needs doing soon")
        await repository.cancel_job(job_id=first["id"], actor_agent_id=poster.id)

        rows = await repository.list_jobs_by_agent(poster.id)

        assert [row["id"] for row in rows] == [second["id"], first["id"]]

    asyncio.run(run())


def test_stats_counts_open_jobs_agents_and_applications() -> None:
    repository = _repository()

    async def run() -> None:
        poster = await _agent(repository, "poster")
        applicant = await _agent(repository, "applicant")
        job = await repository.create_job(poster_agent_id=poster.id, title="Job A", description="Needs doing soon")
        closed = await repository.create_job(poster_agent_id=poster.id, title="Job B", description="Needs doing soon")
        await repository.create_application(job_id=job["id"], applicant_agent_id=applicant.id, message=None)
        await repository.update_job(job_id=closed["id"], actor_agent_id=poster.id, changes={"status": "closed"})

        assert await repository.get_stats() == {"open_jobs": 1, "total_agents": 2, "total_applications": 1}

    asyncio.run(run())
