"""Fetch coordination between the network and the entity caches."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Hashable, TypeVar

from ..lifecycle import AsyncOperation
from .pagination import Page, fetch_all_pages
from .store import Comparator, EntityCache

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

logger = logging.getLogger(__name__)

PartitionFetch = Callable[[str, str | None], Awaitable[Page[V]]]


class PartitionLoader(Generic[V]):
    """Loads whole partitions of a cache, one outstanding fetch per partition.

    Each partition key owns its AsyncOperation and its in-flight task, so
    switching away from a partition and back again rejoins the fetch that is
    already running. The loader also remembers which partition is being
    viewed; ``operation`` is that partition's tracker, and a fetch finishing
    for any other partition only fills the cache and its own tracker.
    """

    def __init__(
        self,
        cache: EntityCache[Any, V],
        fetch_page: PartitionFetch[V],
        *,
        belongs: Callable[[V, str], bool] | None = None,
        name: str = "partition",
    ) -> None:
        self._cache = cache
        self._fetch_page = fetch_page
        self._belongs = belongs
        self.name = name
        self._partition: str | None = None
        self._idle: AsyncOperation[list[V]] = AsyncOperation(name=name)
        self._operations: dict[str, AsyncOperation[list[V]]] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._generations: dict[str, int] = {}

    @property
    def partition(self) -> str | None:
        return self._partition

    @property
    def operation(self) -> AsyncOperation[list[V]]:
        """Tracker of the selected partition; an idle one before any select()."""

        if self._partition is None:
            return self._idle
        return self.operation_for(self._partition)

    def operation_for(self, partition: str) -> AsyncOperation[list[V]]:
        if partition not in self._operations:
            self._operations[partition] = AsyncOperation(name=f"{self.name}:{partition}")
        return self._operations[partition]

    def select(self, partition: str) -> AsyncOperation[list[V]]:
        """Make ``partition`` current and return its tracker."""

        self._partition = partition
        return self.operation_for(partition)

    def invalidate(self, partition: str) -> None:
        """Forget that ``partition`` was fetched so the next ensure() refetches it.

        The partition gets a fresh tracker; a fetch already running for it
        still merges its items but no longer resolves any operation.
        """

        self._cache.invalidate(partition)
        self._generations[partition] = self._generations.get(partition, 0) + 1
        self._operations.pop(partition, None)
        self._tasks.pop(partition, None)
        logger.debug("Invalidated partition", extra={"loader": self.name, "partition": partition})

    def invalidate_all(self) -> None:
        partitions = set(self._operations) | set(self._cache.fetched_partitions())
        for partition in partitions:
            self._generations[partition] = self._generations.get(partition, 0) + 1
        self._cache.invalidate_all()
        self._operations.clear()
        self._tasks.clear()
        logger.debug(
            "Invalidated every partition", extra={"loader": self.name, "count": len(partitions)}
        )

    def ensure(self, partition: str) -> asyncio.Task[None] | None:
        """Start a fetch for ``partition`` unless it is fetched or already sent.

        Must be called from a running event loop. Returns the in-flight task,
        or None when nothing needs to be awaited.
        """

        operation = self.select(partition)
        if self._cache.is_fetched(partition):
            return None
        if operation.is_sent():
            return self._tasks.get(partition) if operation.is_loading() else None

        operation.start()
        generation = self._generations.get(partition, 0)
        task = asyncio.get_running_loop().create_task(self._run(partition, operation, generation))
        self._tasks[partition] = task
        return task

    async def load(self, partition: str, comparator: Comparator[V] | None = None) -> list[V]:
        """Ensure ``partition`` is loaded and return its items.

        Raises the stored error when the partition's operation failed.
        """

        task = self.ensure(partition)
        operation = self.operation_for(partition)
        if task is not None:
            await task
        if operation is self._operations.get(partition) and operation.is_failure():
            raise operation.error
        return self.list(partition, comparator)

    def list(self, partition: str, comparator: Comparator[V] | None = None) -> list[V]:
        belongs = self._belongs
        predicate = (lambda value: belongs(value, partition)) if belongs is not None else None
        return self._cache.list(predicate, comparator)

    def _is_registered(self, partition: str, operation: AsyncOperation[list[V]]) -> bool:
        return self._operations.get(partition) is operation

    async def _run(
        self,
        partition: str,
        operation: AsyncOperation[list[V]],
        generation: int,
    ) -> None:
        logger.debug("Fetching partition", extra={"loader": self.name, "partition": partition})

        async def _page(start_key: str | None) -> Page[V]:
            return await self._fetch_page(partition, start_key)

        try:
            items = await fetch_all_pages(_page)
        except asyncio.CancelledError:
            if self._is_registered(partition, operation):
                operation.reset()
                self._tasks.pop(partition, None)
            raise
        except Exception as exc:
            if not self._is_registered(partition, operation):
                logger.info(
                    "Dropped failure of superseded fetch",
                    extra={"loader": self.name, "partition": partition, "error": str(exc)},
                )
                return
            log = logger.warning if partition == self._partition else logger.info
            log(
                "Partition fetch failed",
                extra={"loader": self.name, "partition": partition, "error": str(exc)},
            )
            operation.fail(exc)
            return

        self._cache.put_many(items)
        if self._generations.get(partition, 0) == generation:
            self._cache.mark_fetched(partition)

        if not self._is_registered(partition, operation):
            logger.info(
                "Merged result of superseded fetch",
                extra={"loader": self.name, "partition": partition, "count": len(items)},
            )
            return
        operation.succeed(items)
        if partition == self._partition:
            logger.debug(
                "Fetched partition",
                extra={"loader": self.name, "partition": partition, "count": len(items)},
            )
        else:
            logger.info(
                "Fetched partition in the background",
                extra={"loader": self.name, "partition": partition, "count": len(items)},
            )


class ItemLoader(Generic[K, V]):
    """Fetches single entities on a cache miss, one request per key."""

    def __init__(
        self,
        cache: EntityCache[K, V],
        fetch_one: Callable[[K], Awaitable[V]],
        *,
        name: str = "item",
    ) -> None:
        self._cache = cache
        self._fetch_one = fetch_one
        self.name = name
        self._operations: dict[K, AsyncOperation[V]] = {}
        self._tasks: dict[K, asyncio.Task[None]] = {}

    def operation(self, key: K) -> AsyncOperation[V]:
        if key not in self._operations:
            self._operations[key] = AsyncOperation(name=f"{self.name}:{key}")
        return self._operations[key]

    async def get(self, key: K) -> V | None:
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        operation = self.operation(key)
        if not operation.is_sent():
            operation.start()
            self._tasks[key] = asyncio.get_running_loop().create_task(self._run(key, operation))

        task = self._tasks.get(key)
        if task is not None:
            await task
        if operation.is_failure():
            raise operation.error
        return self._cache.get(key)

    async def _run(self, key: K, operation: AsyncOperation[V]) -> None:
        try:
            value = await self._fetch_one(key)
        except asyncio.CancelledError:
            operation.reset()
            raise
        except Exception as exc:
            logger.warning(
                "Item fetch failed",
                extra={"loader": self.name, "key": str(key), "error": str(exc)},
            )
            operation.fail(exc)
            return
        self._cache.put(value)
        operation.succeed(value)


__all__ = ["ItemLoader", "PartitionFetch", "PartitionLoader"]
