"""Client-side session library for the academy auth API."""

from academy.client.http import AcademyApiError, AcademyClient, describe_http_error
from academy.client.session import AuthState, SessionManager, TeardownReason
from academy.client.storage import JsonFileBackend, MemoryBackend, SecureStorage

__all__ = [
    "AcademyApiError",
    "AcademyClient",
    "AuthState",
    "JsonFileBackend",
    "MemoryBackend",
    "SecureStorage",
    "SessionManager",
    "TeardownReason",
    "describe_http_error",
]
