"""Public HTTP client API for the tutoring application."""

from .client import AsyncHttpClient, HttpClient
from .errors import json_decode_error, request_error, status_error

__all__ = [
    "AsyncHttpClient",
    "HttpClient",
    "json_decode_error",
    "request_error",
    "status_error",
]
