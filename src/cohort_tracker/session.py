"""Session bootstrap wiring the API client, caches and loaders together."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

from . import __version__
from .api import CredentialProvider, TrackerApi
from .cache import ItemLoader, PartitionLoader, TrackerCache
from .catalog import CatalogLoadError, CatalogLoader
from .config import TrackerSettings, get_settings
from .lifecycle import AsyncOperation
from .models import Event, Graduation, Requirement, User
from .scoring import (
    HistoryItem,
    Scoreboard,
    TimelineUpdate,
    build_scoreboard,
    compare_requirements,
    reconcile_timeline,
)

EVENTS_PARTITION = "all"

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for the tracker client."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


class TrackerSession:
    """Client-side state for one signed-in session.

    Reads go through the cache: a partition that has been fetched is served
    from memory, otherwise one fetch sequence is started and shared by every
    concurrent reader. Writes are tracked by their own AsyncOperation.
    """

    def __init__(
        self,
        api: TrackerApi,
        cache: TrackerCache | None = None,
        *,
        settings: TrackerSettings | None = None,
        catalog_metadata: dict[str, Any] | None = None,
    ) -> None:
        self.api = api
        self.cache = cache or TrackerCache()
        self.settings = settings
        self.catalog_metadata = catalog_metadata or {}

        self.requirement_loader: PartitionLoader[Requirement] = PartitionLoader(
            self.cache.requirements,
            lambda cohort, start_key: api.list_requirements_page(cohort, False, start_key),
            belongs=lambda requirement, cohort: requirement.applies_to(cohort),
            name="requirements",
        )
        self.requirement_items: ItemLoader[str, Requirement] = ItemLoader(
            self.cache.requirements, api.get_requirement, name="requirement"
        )
        self.member_loader: PartitionLoader[User] = PartitionLoader(
            self.cache.users,
            api.list_cohort_users_page,
            belongs=lambda user, cohort: user.dojo_cohort == cohort,
            name="members",
        )
        self.event_loader: PartitionLoader[Event] = PartitionLoader(
            self.cache.events,
            lambda _partition, start_key: api.list_events_page(start_key),
            name="events",
        )
        self.graduation_loader: PartitionLoader[Graduation] = PartitionLoader(
            self.cache.graduations,
            api.list_graduations_page,
            belongs=lambda graduation, cohort: graduation.previous_cohort == cohort,
            name="graduations",
        )
        self.timeline_operation: AsyncOperation[User] = AsyncOperation(name="save_timeline")
        self.progress_operation: AsyncOperation[User] = AsyncOperation(name="record_progress")

    def _cohort_loaders(self) -> tuple[PartitionLoader[Any], ...]:
        return (self.requirement_loader, self.member_loader, self.graduation_loader)

    async def requirements(self, cohort: str, scoreboard_only: bool = False) -> list[Requirement]:
        """Requirements applying to ``cohort`` in display order."""

        requirements = await self.requirement_loader.load(cohort, compare_requirements)
        if scoreboard_only:
            requirements = [r for r in requirements if not r.is_hidden]
        return requirements

    async def requirement(self, requirement_id: str) -> Requirement | None:
        return await self.requirement_items.get(requirement_id)

    async def events(self, cohort: str | None = None) -> list[Event]:
        """Every event, or only those ``cohort`` can see when one is given."""

        events = await self.event_loader.load(EVENTS_PARTITION)
        if cohort is not None:
            events = [event for event in events if event.visible_to(cohort)]
        return events

    async def cohort_members(self, cohort: str) -> list[User]:
        return await self.member_loader.load(cohort)

    async def graduations(self, cohort: str) -> list[Graduation]:
        """Graduations out of ``cohort``."""

        return await self.graduation_loader.load(cohort)

    async def scoreboard(self, cohort: str, current_user: User | None = None) -> Scoreboard:
        requirements = await self.requirements(cohort, scoreboard_only=True)
        members = await self.cohort_members(cohort)
        return build_scoreboard(members, cohort, requirements, current_user)

    async def graduation_scoreboard(self, cohort: str) -> Scoreboard:
        """Board of the members who graduated out of ``cohort``, scored against it."""

        requirements = await self.requirements(cohort, scoreboard_only=True)
        graduations = await self.graduations(cohort)
        return build_scoreboard(graduations, cohort, requirements)

    def select_cohort(self, cohort: str) -> None:
        """Switch every cohort-keyed loader to ``cohort``.

        In-flight fetches for the previous cohort keep running and still
        fill the cache, but no longer drive the visible operation.
        """

        for loader in self._cohort_loaders():
            loader.select(cohort)
        logger.info("Selected cohort", extra={"cohort": cohort})

    def refresh(self) -> None:
        """Drop every fetched mark so the next reads go back to the backend.

        Cached entities stay readable until the refetch replaces them.
        """

        for loader in (*self._cohort_loaders(), self.event_loader):
            loader.invalidate_all()
        logger.info("Invalidated session caches")

    async def save_timeline(
        self, requirement_id: str, cohort: str, items: Sequence[HistoryItem]
    ) -> TimelineUpdate:
        """Validate and submit an edited timeline slice as one request.

        Validation errors are returned on the update and nothing is sent.
        """

        update = reconcile_timeline(items, cohort)
        if not update.ok:
            logger.info(
                "Timeline update rejected",
                extra={"requirement_id": requirement_id, "cohort": cohort, "rows": len(update.errors)},
            )
            return update

        request = update.to_request(requirement_id, cohort)
        await self._submit(self.timeline_operation, lambda: self.api.update_user_timeline(request))
        return update

    async def record_progress(
        self, cohort: str, requirement_id: str, count: int, minutes: int = 0
    ) -> User:
        return await self._submit(
            self.progress_operation,
            lambda: self.api.update_user_progress(cohort, requirement_id, count, minutes),
        )

    async def _submit(
        self, operation: AsyncOperation[User], send: Callable[[], Awaitable[User]]
    ) -> User:
        operation.start()
        try:
            user = await send()
        except asyncio.CancelledError:
            operation.reset()
            raise
        except Exception as exc:
            logger.warning(
                "Write failed", extra={"operation": operation.name, "error": str(exc)}
            )
            operation.fail(exc)
            raise
        self.cache.users.put(user)
        operation.succeed(user)
        return user

    def operations(self) -> Iterable[AsyncOperation[Any]]:
        return (
            self.requirement_loader.operation,
            self.member_loader.operation,
            self.graduation_loader.operation,
            self.event_loader.operation,
            self.timeline_operation,
            self.progress_operation,
        )

    def status(self) -> dict[str, Any]:
        return {
            "version": __version__,
            "api_base_url": self.settings.api_base_url if self.settings else None,
            "catalog": dict(self.catalog_metadata),
            "cache": self.cache.summary(),
            "operations": [operation.snapshot() for operation in self.operations()],
        }

    async def aclose(self) -> None:
        await self.api.aclose()


def create_session(
    settings: Optional[TrackerSettings] = None,
    api: TrackerApi | None = None,
    credentials: CredentialProvider | None = None,
) -> TrackerSession:
    """Instantiate a session with the catalog preloaded into the cache."""

    settings = settings or get_settings()
    api = api or TrackerApi.from_settings(settings, credentials=credentials)
    cache = TrackerCache()

    catalog_metadata: dict[str, Any] = {
        "paths": [str(path) for path in settings.catalog_paths],
        "loaded": 0,
        "error": None,
    }
    try:
        requirements = CatalogLoader(settings.catalog_paths).load_all()
    except CatalogLoadError as exc:
        catalog_metadata["error"] = str(exc)
        logger.warning("Requirement catalog failed to load", extra={"error": str(exc)})
    else:
        # Seeded entries are served by id but never mark a partition fetched.
        cache.requirements.put_many(requirements.values())
        catalog_metadata["loaded"] = len(requirements)
        logger.info("Seeded requirement catalog", extra={"count": len(requirements)})

    return TrackerSession(api, cache, settings=settings, catalog_metadata=catalog_metadata)


__all__ = ["TrackerSession", "configure_logging", "create_session"]
