"""Errors raised at the backend boundary."""

from __future__ import annotations


class ApiError(RuntimeError):
    """A failed backend call.

    ``status_code`` is None for transport failures. ``server_message`` carries
    the ``message`` field of the JSON error body when the server sent one.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        server_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


__all__ = ["ApiError"]
