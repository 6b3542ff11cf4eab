"""Request lifecycle tracking and alert presentation."""

from .notifier import DEFAULT_ERROR_MESSAGE, Alert, RequestNotifier, error_message
from .operation import AsyncOperation, OperationInProgressError, RequestStatus

__all__ = [
    "Alert",
    "AsyncOperation",
    "DEFAULT_ERROR_MESSAGE",
    "OperationInProgressError",
    "RequestNotifier",
    "RequestStatus",
    "error_message",
]
