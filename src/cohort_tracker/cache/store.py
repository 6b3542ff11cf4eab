"""In-memory entity store with partition freshness tracking."""

from __future__ import annotations

from functools import cmp_to_key
from typing import Callable, Generic, Hashable, Iterable, TypeVar

from ..models import Event, Graduation, Requirement, User

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Predicate = Callable[[V], bool]
Comparator = Callable[[V, V], int]


class EntityCache(Generic[K, V]):
    """Keyed store for one entity kind.

    Items are upserted by the key function. Partitions record which query
    slices have been retrieved exhaustively; they are only ever set by
    mark_fetched() and cleared by invalidate().
    """

    def __init__(self, key: Callable[[V], K], *, name: str | None = None) -> None:
        self._key = key
        self.name = name
        self._items: dict[K, V] = {}
        self._fetched: set[str] = set()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def key_of(self, value: V) -> K:
        return self._key(value)

    def get(self, key: K) -> V | None:
        return self._items.get(key)

    def put(self, value: V) -> None:
        self._items[self._key(value)] = value

    def put_many(self, values: Iterable[V]) -> None:
        for value in values:
            self._items[self._key(value)] = value

    def is_fetched(self, partition: str) -> bool:
        return partition in self._fetched

    def mark_fetched(self, partition: str) -> None:
        self._fetched.add(partition)

    def invalidate(self, partition: str) -> None:
        self._fetched.discard(partition)

    def invalidate_all(self) -> None:
        self._fetched.clear()

    def fetched_partitions(self) -> tuple[str, ...]:
        return tuple(sorted(self._fetched))

    def list(
        self,
        predicate: Predicate[V] | None = None,
        comparator: Comparator[V] | None = None,
    ) -> list[V]:
        """Filter and sort the current items; computed fresh on every call."""

        values = [value for value in self._items.values() if predicate is None or predicate(value)]
        if comparator is not None:
            values.sort(key=cmp_to_key(comparator))
        return values


class TrackerCache:
    """Session-wide caches, one per entity kind."""

    def __init__(self) -> None:
        self.requirements: EntityCache[str, Requirement] = EntityCache(
            lambda requirement: requirement.id, name="requirements"
        )
        self.events: EntityCache[str, Event] = EntityCache(lambda event: event.id, name="events")
        self.users: EntityCache[str, User] = EntityCache(lambda user: user.username, name="users")
        self.graduations: EntityCache[tuple[str, str], Graduation] = EntityCache(
            lambda graduation: (graduation.previous_cohort, graduation.username), name="graduations"
        )

    def all(self) -> tuple[EntityCache, ...]:
        return (self.requirements, self.events, self.users, self.graduations)

    def summary(self) -> dict[str, dict[str, object]]:
        return {
            cache.name or "unnamed": {
                "items": len(cache),
                "fetched_partitions": list(cache.fetched_partitions()),
            }
            for cache in self.all()
        }


__all__ = ["Comparator", "EntityCache", "Predicate", "TrackerCache"]
