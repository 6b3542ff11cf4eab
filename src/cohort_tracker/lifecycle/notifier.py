"""Dismissible success/failure alerts driven by an operation's state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from .operation import AsyncOperation, RequestStatus

DEFAULT_ERROR_MESSAGE = (
    "Something went wrong. Please try again later or contact support if the problem persists"
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Alert:
    severity: Literal["error", "success"]
    message: str


def error_message(error: Any, default: str | None = None) -> str:
    """Pick the most specific message available for an error."""

    server_message = getattr(error, "server_message", None)
    if server_message:
        return str(server_message)
    if isinstance(error, BaseException) and str(error):
        return str(error)
    if isinstance(error, str) and error:
        return error
    return default or DEFAULT_ERROR_MESSAGE


class RequestNotifier:
    """Presents an operation's outcome; dismissing it resets the operation."""

    def __init__(
        self,
        operation: AsyncOperation[Any],
        *,
        show_error: bool = True,
        show_success: bool = False,
        default_error_message: str | None = None,
    ) -> None:
        self._operation = operation
        self._show_error = show_error
        self._show_success = show_success
        self._default_error_message = default_error_message

    @property
    def operation(self) -> AsyncOperation[Any]:
        return self._operation

    def alert(self) -> Alert | None:
        operation = self._operation
        if (
            self._show_error
            and operation.status is RequestStatus.FAILURE
            and operation.error is not None
        ):
            message = error_message(operation.error, self._default_error_message)
            logger.warning(
                "Request failed",
                extra={"operation": operation.name, "alert_message": message},
            )
            return Alert(severity="error", message=message)
        if self._show_success and operation.data is not None:
            return Alert(severity="success", message=str(operation.data))
        return None

    def dismiss(self) -> None:
        self._operation.reset()


__all__ = ["Alert", "DEFAULT_ERROR_MESSAGE", "RequestNotifier", "error_message"]
