"""Async HTTP client for the progress tracker backend."""

from __future__ import annotations

import logging
from typing import Any, Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..cache.pagination import Page, fetch_all_pages
from ..config import TrackerSettings
from ..models import Event, Graduation, Requirement, User
from ..scoring.timeline import TimelineUpdateRequest
from .errors import ApiError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CredentialProvider(Protocol):
    """Supplies the bearer token for authenticated calls."""

    async def id_token(self) -> str: ...


class StaticCredentials:
    def __init__(self, token: str) -> None:
        self._token = token

    async def id_token(self) -> str:
        return self._token


class TrackerApi:
    """Thin typed wrapper over the backend endpoints.

    Single-entity endpoints return the entity directly. List endpoints come
    in two flavours: ``*_page`` fetches one page for a continuation cursor,
    the plain variant drains every page.
    """

    def __init__(
        self,
        base_url: str,
        *,
        credentials: CredentialProvider | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credentials = credentials
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: TrackerSettings,
        *,
        credentials: CredentialProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TrackerApi":
        if credentials is None and settings.id_token:
            credentials = StaticCredentials(settings.id_token)
        return cls(
            settings.api_base_url,
            credentials=credentials,
            timeout=settings.request_timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "TrackerApi":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # Users -----------------------------------------------------------------

    async def get_current_user(self) -> User:
        return _parse_model(User, await self._request("GET", "/user"))

    async def get_public_user(self, username: str) -> User:
        data = await self._request("GET", f"/public/user/{username}", auth=False)
        return _parse_model(User, data)

    async def list_cohort_users_page(self, cohort: str, start_key: str | None = None) -> Page[User]:
        data = await self._request("GET", f"/user/{cohort}", params=_page_params(start_key))
        return _parse_page(data, "users", User)

    async def list_cohort_users(self, cohort: str) -> list[User]:
        return await fetch_all_pages(lambda key: self.list_cohort_users_page(cohort, key))

    async def update_user_progress(
        self,
        cohort: str,
        requirement_id: str,
        incremental_count: int,
        incremental_minutes_spent: int,
    ) -> User:
        data = await self._request(
            "POST",
            "/user/progress",
            json={
                "cohort": cohort,
                "requirementId": requirement_id,
                "incrementalCount": incremental_count,
                "incrementalMinutesSpent": incremental_minutes_spent,
            },
        )
        return _parse_model(User, data)

    async def update_user_timeline(self, request: TimelineUpdateRequest) -> User:
        data = await self._request("POST", "/user/progress/timeline", json=request.to_payload())
        return _parse_model(User, data)

    # Requirements ------------------------------------------------------------

    async def list_requirements_page(
        self,
        cohort: str,
        scoreboard_only: bool = False,
        start_key: str | None = None,
    ) -> Page[Requirement]:
        params = _page_params(start_key)
        params["scoreboardOnly"] = "true" if scoreboard_only else "false"
        data = await self._request("GET", f"/requirements/{cohort}", params=params)
        return _parse_page(data, "requirements", Requirement)

    async def list_requirements(self, cohort: str, scoreboard_only: bool = False) -> list[Requirement]:
        return await fetch_all_pages(
            lambda key: self.list_requirements_page(cohort, scoreboard_only, key)
        )

    async def get_requirement(self, requirement_id: str) -> Requirement:
        return _parse_model(Requirement, await self._request("GET", f"/requirement/{requirement_id}"))

    # Events and graduations ----------------------------------------------------

    async def list_events_page(self, start_key: str | None = None) -> Page[Event]:
        data = await self._request("GET", "/event", params=_page_params(start_key))
        return _parse_page(data, "events", Event)

    async def list_events(self) -> list[Event]:
        return await fetch_all_pages(self.list_events_page)

    async def list_graduations_page(
        self, cohort: str, start_key: str | None = None
    ) -> Page[Graduation]:
        data = await self._request(
            "GET", f"/graduations/{cohort}", params=_page_params(start_key), auth=False
        )
        return _parse_page(data, "graduations", Graduation)

    async def list_graduations(self, cohort: str) -> list[Graduation]:
        return await fetch_all_pages(lambda key: self.list_graduations_page(cohort, key))

    # Plumbing ----------------------------------------------------------------

    async def _headers(self, auth: bool) -> dict[str, str]:
        if not auth:
            return {}
        if self._credentials is None:
            raise ApiError("No credentials configured for an authenticated request")
        return {"Authorization": f"Bearer {await self._credentials.id_token()}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        auth: bool = True,
    ) -> Any:
        headers = await self._headers(auth)
        logger.debug("API request", extra={"method": method, "path": path})
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            server_message = _server_message(exc.response)
            logger.warning(
                "API request failed",
                extra={"method": method, "path": path, "status_code": status_code},
            )
            raise ApiError(
                server_message or f"{method} {path} failed with status {status_code}",
                status_code=status_code,
                server_message=server_message,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "API transport error",
                extra={"method": method, "path": path, "error": str(exc)},
            )
            raise ApiError(f"{method} {path} failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"{method} {path} returned invalid JSON", status_code=response.status_code
            ) from exc


def _page_params(start_key: str | None) -> dict[str, str]:
    return {"startKey": start_key} if start_key else {}


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"] or None
    return None


def _parse_model(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ApiError(f"Invalid {model.__name__} payload: {exc}") from exc


def _parse_page(data: Any, items_key: str, model: type[ModelT]) -> Page[ModelT]:
    if not isinstance(data, dict):
        raise ApiError(f"Expected an object with '{items_key}', got {type(data).__name__}")
    try:
        items = [model.model_validate(item) for item in data.get(items_key) or []]
    except ValidationError as exc:
        raise ApiError(f"Invalid {items_key} payload: {exc}") from exc
    return Page(items=items, last_evaluated_key=data.get("lastEvaluatedKey") or None)


__all__ = ["CredentialProvider", "StaticCredentials", "TrackerApi"]
