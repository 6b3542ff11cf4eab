"""Backend boundary: HTTP client, credentials and errors."""

from .client import CredentialProvider, StaticCredentials, TrackerApi
from .errors import ApiError

__all__ = ["ApiError", "CredentialProvider", "StaticCredentials", "TrackerApi"]
