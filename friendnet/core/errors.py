from __future__ import annotations

from typing import Any

import httpx


class ApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def user_message(self, default: str) -> str:
        """Server-provided message when the response carried one, else ``default``."""
        if self.status_code is not None and self.message:
            return self.message
        return default


class NotAuthenticatedError(ApiError):
    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


def _message_from_body(response: httpx.Response) -> str | None:
    try:
        data: Any = response.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    message = data.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return None


def api_error_from_http(exc: httpx.HTTPError) -> ApiError:
    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        # Keep the body message verbatim; an empty string means "use the caller's default".
        return ApiError(_message_from_body(response) or "", status_code=response.status_code)
    return ApiError(str(exc) or exc.__class__.__name__)
