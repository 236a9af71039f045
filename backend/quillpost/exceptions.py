"""
Quillpost Backend — Custom Exception Hierarchy
===============================================

What:  Defines application-specific exceptions for the draft and conversion paths.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and the remote draft client; caught by global
       handlers, the two-tier writer and the auto-save controller.

Exception Hierarchy:
    QuillpostError (base)
    ├── FormatError          → 400 Bad Request (unsupported or malformed format)
    ├── UnauthorizedError    → 401 Unauthorized (no user, or not the owner)
    ├── NotFoundError        → 404 Not Found (missing snapshot)
    └── PersistenceError     → 500 Internal Server Error (save/list/get/delete failed)

Propagation:
    Format Converter failures never reach the editor; only `convert()` raises
    FormatError for unknown format names or malformed JSON text. Persistence
    failures on save are absorbed by the local fallback tier; list failures
    degrade to local results; get/delete failures propagate.
"""

from typing import Any, Dict, Optional


class QuillpostError(Exception):
    """
    Base exception for all Quillpost application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class FormatError(QuillpostError):
    """
    Raised when a content format is unknown or the source content is malformed.

    When:    convert() called with a format outside html/json/markdown, or with
             JSON text that does not decode.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Unsupported content format",
        fmt: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if fmt is not None:
            ctx["format"] = fmt
        super().__init__(message=message, context=ctx)
        self.fmt = fmt


class UnauthorizedError(QuillpostError):
    """
    Raised when no user is attached to the request, or the user does not own
    the requested snapshot.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "You are not allowed to access this draft",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(QuillpostError):
    """
    Raised when a requested resource does not exist.

    When:    GET or DELETE /api/drafts/{id} with an unknown id, including a
             second delete of the same id.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class PersistenceError(QuillpostError):
    """
    Raised when a draft save, list, get or delete fails unexpectedly.

    When:    Database connection lost, constraint violation, remote API
             unreachable after retries, local store not writable.
    HTTP:    500 Internal Server Error (details logged server-side only)

    Attributes:
        retryable: True when the failure is transient (network, timeouts)
    """

    def __init__(
        self,
        message: str = "Could not persist the draft. Please try again later.",
        retryable: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.retryable = retryable
