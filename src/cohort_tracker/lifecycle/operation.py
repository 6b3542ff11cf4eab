"""Lifecycle tracking for a single network call."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RequestStatus(str, Enum):
    NOT_SENT = "NOT_SENT"
    LOADING = "LOADING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    RESET = "RESET"


class OperationInProgressError(RuntimeError):
    """Raised when start() is called on an operation that is already loading."""


Listener = Callable[["AsyncOperation[Any]"], None]


class AsyncOperation(Generic[T]):
    """Observable state machine for one request.

    ``data`` is cleared on start() and reset(); ``error`` is cleared on
    start(), reset() and succeed(). fail() keeps whatever ``data`` holds.
    """

    def __init__(self, name: str | None = None) -> None:
        self.name = name
        self._status = RequestStatus.NOT_SENT
        self._data: T | None = None
        self._error: Any = None
        self._listeners: list[Listener] = []

    def __repr__(self) -> str:
        return f"AsyncOperation(name={self.name!r}, status={self._status.value})"

    @property
    def status(self) -> RequestStatus:
        return self._status

    @property
    def data(self) -> T | None:
        return self._data

    @property
    def error(self) -> Any:
        return self._error

    def start(self) -> None:
        if self._status is RequestStatus.LOADING:
            raise OperationInProgressError(
                f"Operation {self.name or id(self)} is already loading; check is_sent() first"
            )
        self._data = None
        self._error = None
        self._transition(RequestStatus.LOADING)

    def succeed(self, data: T | None = None) -> None:
        self._data = data
        self._error = None
        self._transition(RequestStatus.SUCCESS)

    def fail(self, error: Any = None) -> None:
        self._error = error
        self._transition(RequestStatus.FAILURE)

    def reset(self) -> None:
        self._data = None
        self._error = None
        self._transition(RequestStatus.RESET)

    def is_sent(self) -> bool:
        return self._status not in (RequestStatus.NOT_SENT, RequestStatus.RESET)

    def is_loading(self) -> bool:
        return self._status is RequestStatus.LOADING

    def is_success(self) -> bool:
        return self._status is RequestStatus.SUCCESS

    def is_failure(self) -> bool:
        return self._status is RequestStatus.FAILURE

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback fired after every transition.

        Returns a callable that removes the listener again.
        """

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self._status.value,
            "has_data": self._data is not None,
            "error": str(self._error) if self._error is not None else None,
        }

    def _transition(self, status: RequestStatus) -> None:
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception(
                    "Operation listener failed",
                    extra={"operation": self.name, "status": status.value},
                )


__all__ = ["AsyncOperation", "OperationInProgressError", "RequestStatus"]
