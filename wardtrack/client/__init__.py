"""Python client for the ward API: HTTP client and patient state store."""

from wardtrack.client.api_client import ApiError, WardApiClient
from wardtrack.client.store import PatientStore, WardSession

__all__ = ["ApiError", "PatientStore", "WardApiClient", "WardSession"]
