"""Continuation-cursor pagination helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, TypeVar

V = TypeVar("V")


@dataclass(slots=True)
class Page(Generic[V]):
    """One page of a list endpoint."""

    items: list[V] = field(default_factory=list)
    last_evaluated_key: str | None = None


FetchPage = Callable[[str | None], Awaitable[Page[V]]]


async def fetch_all_pages(fetch_page: FetchPage[V], start_key: str | None = None) -> list[V]:
    """Drain a paginated endpoint, following ``last_evaluated_key`` until it is empty."""

    result: list[V] = []
    while True:
        page = await fetch_page(start_key)
        result.extend(page.items)
        start_key = page.last_evaluated_key
        if not start_key:
            return result


__all__ = ["FetchPage", "Page", "fetch_all_pages"]
