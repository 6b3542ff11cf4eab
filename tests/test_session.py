from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from cohort_tracker.api import ApiError, StaticCredentials, TrackerApi
from cohort_tracker.config import TrackerSettings
from cohort_tracker.lifecycle import RequestNotifier, RequestStatus
from cohort_tracker.models import TimelineEntry, User
from cohort_tracker.scoring import HistoryItem
from cohort_tracker.session import create_session

CREATED = "2024-03-01T00:00:00Z"


class FakeBackend:
    """Routes MockTransport requests and records what was asked for."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.timeline_status = 200
        self.requirements_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/requirements/"):
            if self.requirements_status != 200:
                return httpx.Response(
                    self.requirements_status, json={"message": "Requirements unavailable"}
                )
            if "startKey" not in request.url.params:
                return httpx.Response(
                    200,
                    json={
                        "requirements": [
                            {"id": "tac", "name": "Polgar", "category": "Tactics", "counts": {"A": 4}},
                            {
                                "id": "hidden",
                                "name": "Hidden",
                                "category": "Tactics",
                                "scoreboardDisplay": "HIDDEN",
                                "counts": {"A": 1},
                            },
                        ],
                        "lastEvaluatedKey": "page-2",
                    },
                )
            return httpx.Response(
                200,
                json={
                    "requirements": [
                        {
                            "id": "welcome",
                            "name": "Intro",
                            "category": "Welcome to the Dojo",
                            "counts": {"ALL_COHORTS": 1},
                        }
                    ]
                },
            )
        if path.startswith("/user/") and not path.startswith("/user/progress"):
            return httpx.Response(
                200,
                json={
                    "users": [
                        {
                            "username": "alice",
                            "dojoCohort": "A",
                            "progress": {"tac": {"requirementId": "tac", "counts": {"A": 2}}},
                        },
                        {"username": "bob", "dojoCohort": "A"},
                    ]
                },
            )
        if path == "/event":
            return httpx.Response(
                200,
                json={
                    "events": [
                        {"id": "ev1", "cohorts": ["A"]},
                        {"id": "ev2", "cohorts": ["B"]},
                        {"id": "ev3"},
                    ]
                },
            )
        if path.startswith("/graduations/"):
            return httpx.Response(
                200,
                json={
                    "graduations": [
                        {
                            "username": "carol",
                            "previousCohort": "A",
                            "newCohort": "B",
                            "progress": {"tac": {"requirementId": "tac", "counts": {"A": 4}}},
                        }
                    ]
                },
            )
        if path == "/user/progress/timeline":
            if self.timeline_status != 200:
                return httpx.Response(self.timeline_status, json={"message": "Timeline rejected"})
            body = json.loads(request.content)
            return httpx.Response(
                200, json={"username": "alice", "dojoCohort": "A", "timeline": body["entries"]}
            )
        if path == "/user/progress":
            return httpx.Response(200, json={"username": "alice", "dojoCohort": "A"})
        return httpx.Response(404, json={"message": f"No route for {path}"})

    def paths(self, prefix: str) -> list[str]:
        return [r.url.path for r in self.requests if r.url.path.startswith(prefix)]


class GatedBackend(FakeBackend):
    """Holds every response until the gate opens."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()
        self.arrived: list[str] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.arrived.append(request.url.path)
        await self.gate.wait()
        return super().__call__(request)


class FailingCredentials:
    async def id_token(self) -> str:
        raise RuntimeError("Token refresh failed")


def make_session(tmp_path: Path, backend: FakeBackend, catalog: str | None = None, credentials=None):
    if catalog is not None:
        (tmp_path / "catalog.yaml").write_text(catalog, encoding="utf-8")
    settings = TrackerSettings(
        api_base_url="https://api.example.test", catalog_paths=[tmp_path]
    )
    api = TrackerApi(
        settings.api_base_url,
        credentials=credentials or StaticCredentials("token"),
        transport=httpx.MockTransport(backend),
    )
    return create_session(settings=settings, api=api)


def history_item(count: str, minutes: str = "") -> HistoryItem:
    entry = TimelineEntry(
        requirementId="tac", cohort="A", previousCount=0, newCount=1, createdAt=CREATED
    )
    return HistoryItem(
        date=datetime(2024, 3, 1, tzinfo=timezone.utc),
        count=count,
        hours="",
        minutes=minutes,
        entry=entry,
    )


def test_catalog_seeds_cache_without_marking_partitions(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(
        tmp_path,
        backend,
        catalog="- id: seeded\n  name: Seeded\n  category: Opening\n  counts: {A: 1}\n",
    )

    assert session.cache.requirements.get("seeded") is not None
    assert not session.cache.requirements.is_fetched("A")
    assert session.status()["catalog"]["loaded"] == 1

    requirement = asyncio.run(session.requirement("seeded"))
    assert requirement is not None
    assert backend.requests == []


def test_catalog_errors_are_reported_in_status(tmp_path: Path) -> None:
    session = make_session(tmp_path, FakeBackend(), catalog="- [broken\n")

    status = session.status()

    assert status["catalog"]["loaded"] == 0
    assert "Failed to parse YAML" in status["catalog"]["error"]


def test_requirements_load_once_and_sort(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)

    async def main():
        everything = await session.requirements("A")
        visible = await session.requirements("A", scoreboard_only=True)
        return everything, visible

    everything, visible = asyncio.run(main())

    assert [r.id for r in everything] == ["welcome", "hidden", "tac"]
    assert [r.id for r in visible] == ["welcome", "tac"]
    assert backend.paths("/requirements/") == ["/requirements/A", "/requirements/A"]
    assert session.cache.requirements.is_fetched("A")


def test_scoreboard_puts_current_user_first(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)
    me = User(username="bob", dojoCohort="A")

    board = asyncio.run(session.scoreboard("A", current_user=me))

    assert [row.username for row in board.rows] == ["bob", "alice"]
    assert [column.field for column in board.columns] == ["welcome", "tac"]
    alice = board.rows[1]
    assert alice.cohort_score == 2
    assert alice.percent_complete == 40.0


def test_events_are_cached(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)

    async def main():
        await session.events()
        return await session.events()

    events = asyncio.run(main())

    assert [e.id for e in events] == ["ev1", "ev2", "ev3"]
    assert backend.paths("/event") == ["/event"]


def test_events_filtered_by_cohort_visibility(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)

    async def main():
        return await session.events("A"), await session.events("C")

    for_a, for_c = asyncio.run(main())

    assert [e.id for e in for_a] == ["ev1", "ev3"]
    assert [e.id for e in for_c] == ["ev3"]
    assert backend.paths("/event") == ["/event"]


def test_graduations_load_once_per_cohort(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)

    async def main():
        await session.graduations("A")
        return await session.graduations("A")

    graduations = asyncio.run(main())

    assert [g.username for g in graduations] == ["carol"]
    assert backend.paths("/graduations/") == ["/graduations/A"]
    assert session.status()["cache"]["graduations"] == {"items": 1, "fetched_partitions": ["A"]}


def test_graduation_scoreboard_scores_against_previous_cohort(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)
    me = User(username="alice", dojoCohort="A")

    async def main():
        members = await session.scoreboard("A", current_user=me)
        graduates = await session.graduation_scoreboard("A")
        return members, graduates

    members, graduates = asyncio.run(main())

    assert [row.username for row in members.rows] == ["alice", "bob"]
    assert [row.username for row in graduates.rows] == ["carol"]
    assert [column.field for column in graduates.columns] == ["welcome", "tac"]
    carol = graduates.rows[0]
    assert carol.cohort_score == 4
    assert carol.percent_complete == 80.0
    assert carol.graduation_cohorts == []


def test_refresh_refetches_on_next_read(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)

    async def main():
        await session.events()
        await session.graduations("A")
        session.refresh()
        assert session.status()["cache"]["events"]["fetched_partitions"] == []
        assert session.cache.graduations.get(("A", "carol")) is not None
        await session.events()
        await session.graduations("A")

    asyncio.run(main())

    assert backend.paths("/event") == ["/event", "/event"]
    assert backend.paths("/graduations/") == ["/graduations/A", "/graduations/A"]


def test_select_cohort_ignores_late_result_of_previous_cohort(tmp_path: Path) -> None:
    backend = GatedBackend()
    session = make_session(tmp_path, backend)

    async def main():
        session.select_cohort("A")
        reads = asyncio.gather(session.cohort_members("A"), session.requirements("A"))
        while len(backend.arrived) < 2:
            await asyncio.sleep(0)
        session.select_cohort("B")
        backend.gate.set()
        return await reads

    members, requirements = asyncio.run(main())

    assert {u.username for u in members} == {"alice", "bob"}
    assert {r.id for r in requirements} == {"tac", "hidden", "welcome"}
    assert session.member_loader.partition == "B"
    assert session.member_loader.operation.status is RequestStatus.NOT_SENT
    assert session.requirement_loader.operation.status is RequestStatus.NOT_SENT
    assert session.member_loader.operation_for("A").is_success()
    assert session.cache.users.get("alice") is not None
    assert session.cache.requirements.is_fetched("A")


def test_dismissing_failed_load_allows_retry(tmp_path: Path) -> None:
    backend = FakeBackend()
    backend.requirements_status = 503
    session = make_session(tmp_path, backend)

    async def main():
        with pytest.raises(ApiError):
            await session.requirements("A")
        with pytest.raises(ApiError):
            await session.requirements("A")
        assert backend.paths("/requirements/") == ["/requirements/A"]

        notifier = RequestNotifier(session.requirement_loader.operation)
        assert notifier.alert().message == "Requirements unavailable"
        notifier.dismiss()
        backend.requirements_status = 200
        return await session.requirements("A")

    requirements = asyncio.run(main())

    assert [r.id for r in requirements] == ["welcome", "hidden", "tac"]
    assert session.requirement_loader.operation.is_success()
    assert len(backend.paths("/requirements/")) == 3


def test_save_timeline_rejects_invalid_rows_without_request(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)

    update = asyncio.run(session.save_timeline("tac", "A", [history_item("0")]))

    assert not update.ok
    assert backend.paths("/user") == []
    assert session.timeline_operation.status is RequestStatus.NOT_SENT


def test_save_timeline_sends_one_request_and_caches_user(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)

    update = asyncio.run(
        session.save_timeline("tac", "A", [history_item("3", "10"), history_item("-1")])
    )

    assert update.ok
    assert backend.paths("/user/progress/timeline") == ["/user/progress/timeline"]
    assert session.timeline_operation.is_success()
    cached = session.cache.users.get("alice")
    assert [e.new_count for e in cached.timeline] == [3, 2]


def test_save_timeline_failure_is_tracked(tmp_path: Path) -> None:
    backend = FakeBackend()
    backend.timeline_status = 400
    session = make_session(tmp_path, backend)

    with pytest.raises(ApiError):
        asyncio.run(session.save_timeline("tac", "A", [history_item("1")]))

    assert session.timeline_operation.is_failure()
    alert = RequestNotifier(session.timeline_operation).alert()
    assert alert is not None
    assert alert.message == "Timeline rejected"


def test_record_progress(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend)

    user = asyncio.run(session.record_progress("A", "tac", 2, 30))

    assert user.username == "alice"
    assert session.progress_operation.is_success()
    assert json.loads(backend.requests[0].content)["incrementalMinutesSpent"] == 30


def test_select_cohort_replaces_operations(tmp_path: Path) -> None:
    session = make_session(tmp_path, FakeBackend())
    asyncio.run(session.requirements("A"))
    previous = session.requirement_loader.operation

    session.select_cohort("B")

    assert session.requirement_loader.partition == "B"
    assert session.member_loader.partition == "B"
    assert session.requirement_loader.operation is not previous
    assert session.status()["cache"]["requirements"]["fetched_partitions"] == ["A"]


def test_credential_failure_does_not_lock_writes(tmp_path: Path) -> None:
    backend = FakeBackend()
    session = make_session(tmp_path, backend, credentials=FailingCredentials())

    async def main():
        for _ in range(2):
            with pytest.raises(RuntimeError, match="Token refresh failed"):
                await session.save_timeline("tac", "A", [history_item("1")])
            assert session.timeline_operation.is_failure()
        with pytest.raises(RuntimeError):
            await session.record_progress("A", "tac", 1)

    asyncio.run(main())

    assert backend.requests == []
    assert session.progress_operation.is_failure()
    alert = RequestNotifier(session.timeline_operation).alert()
    assert alert.message == "Token refresh failed"


def test_cancelled_write_resets_operation(tmp_path: Path) -> None:
    backend = GatedBackend()
    session = make_session(tmp_path, backend)

    async def main():
        task = asyncio.create_task(session.record_progress("A", "tac", 2))
        while not backend.arrived:
            await asyncio.sleep(0)
        assert session.progress_operation.is_loading()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.progress_operation.status is RequestStatus.NOT_SENT

        backend.gate.set()
        return await session.record_progress("A", "tac", 2)

    user = asyncio.run(main())

    assert user.username == "alice"
    assert session.progress_operation.is_success()
