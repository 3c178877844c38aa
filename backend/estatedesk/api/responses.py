"""
Response envelope shared by the API routes

Success bodies are ``{"status": true, "message"?, "data", "pagination"?}``;
failures are produced by the exception handlers in main.py.
"""
from typing import Any, Optional

from estatedesk.core.pagination import Page


def success(data: Any = None, message: Optional[str] = None, page: Optional[Page] = None) -> dict:
    body = {"status": True}
    if message:
        body["message"] = message
    body["data"] = data
    if page is not None:
        body["pagination"] = page.meta()
    return body
