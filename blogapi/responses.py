"""Builders for the ``{success, message?, data?, errors?}`` response envelope."""
from typing import Any


def success_response(data: Any = None, message: str | None = None, **extra: Any) -> dict:
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    body.update(extra)
    if data is not None:
        body["data"] = data
    return body


def error_response(message: str, errors: list[str] | None = None, **extra: Any) -> dict:
    body: dict[str, Any] = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    body.update(extra)
    return body
