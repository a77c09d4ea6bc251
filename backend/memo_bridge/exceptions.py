"""
Memo Bridge Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions, each bound to an HTTP status code.
How:   Every exception carries a client-facing message and an optional
       context dict. The handler registered in main.py renders any
       MemoBridgeError as `{"error": message}` with its status code.
Who:   Raised by the route, MemoService and the upstream services.

Exception Hierarchy:
    MemoBridgeError (base)                 → 500
    ├── MethodNotAllowedError              → 405
    ├── AuthenticationError                → 401
    ├── ValidationError                    → 400
    └── UpstreamError                      → 502
        ├── CsrfFetchError                 (token resource unreachable / non-2xx)
        ├── CsrfTokenNotFoundError         (no strategy found a token)
        └── ImportApiError                 (import endpoint non-2xx)
"""

from typing import Any, Dict, Optional

# Upstream bodies are echoed into error messages; cap their length
BODY_EXCERPT_LIMIT = 500


def excerpt(text: str, limit: int = BODY_EXCERPT_LIMIT) -> str:
    """Trim an upstream response body for inclusion in an error message."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class MemoBridgeError(Exception):
    """
    Base exception for all Memo Bridge errors.

    Attributes:
        message:     Client-facing error description (returned as `error`)
        context:     Debug details, logged server-side only
        status_code: HTTP status used by the global handler
        headers:     Extra response headers for this error class
    """

    status_code: int = 500
    headers: Optional[Dict[str, str]] = None

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class MethodNotAllowedError(MemoBridgeError):
    """Anything other than POST (or an OPTIONS preflight). No upstream calls made."""

    status_code = 405
    headers = {"Allow": "POST, OPTIONS"}

    def __init__(self, method: str = "", context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if method:
            ctx["method"] = method
        super().__init__(message="Method not allowed", context=ctx)


class AuthenticationError(MemoBridgeError):
    """
    Bearer credential missing, malformed or wrong.

    The response never says which of the three it was.
    """

    status_code = 401
    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        super().__init__(message="Unauthorized", context=context)


class ValidationError(MemoBridgeError):
    """
    Raised when the request body is not acceptable.

    When:    Body is not JSON, or `text` is absent / not a string.
    HTTP:    400 Bad Request

    Example response:
        {"error": "Missing or invalid 'text' field"}
    """

    status_code = 400

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UpstreamError(MemoBridgeError):
    """
    Raised when Scrapbox refused or failed a request.

    What:    Either step of the upstream pipeline went wrong.
    HTTP:    502 Bad Gateway. Never retried automatically.

    Attributes:
        upstream_status: HTTP status Scrapbox answered with (None for
                         transport failures and missing tokens)
        body_excerpt:    Truncated upstream body, for operator debugging
    """

    status_code = 502

    def __init__(
        self,
        message: str = "Unknown error",
        upstream_status: Optional[int] = None,
        body_excerpt: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if upstream_status is not None:
            ctx["upstream_status"] = upstream_status
        super().__init__(message=message, context=ctx)
        self.upstream_status = upstream_status
        self.body_excerpt = body_excerpt


class CsrfFetchError(UpstreamError):
    """The token resource answered non-2xx, or could not be reached at all."""

    def __init__(
        self,
        upstream_status: Optional[int] = None,
        body: str = "",
        detail: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        body_excerpt = excerpt(body)
        if upstream_status is not None:
            detail = f"{upstream_status} {body_excerpt}".rstrip()
        super().__init__(
            message=f"Failed to fetch CSRF token: {detail}",
            upstream_status=upstream_status,
            body_excerpt=body_excerpt,
            context=context,
        )


class CsrfTokenNotFoundError(UpstreamError):
    """
    The token resource answered 2xx but no extraction strategy found a token.

    Treated as a hard failure: the upstream page is presumed malformed or the
    service contract has changed.
    """

    def __init__(self, source: str = "", context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if source:
            ctx["source"] = source
        super().__init__(message="CSRF token not found in upstream response", context=ctx)


class ImportApiError(UpstreamError):
    """The import endpoint answered non-2xx, or could not be reached."""

    def __init__(
        self,
        upstream_status: Optional[int] = None,
        body: str = "",
        detail: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        body_excerpt = excerpt(body)
        if upstream_status is not None:
            message = f"Import API error {upstream_status}: {body_excerpt}"
        else:
            message = f"Import API request failed: {detail}"
        super().__init__(
            message=message,
            upstream_status=upstream_status,
            body_excerpt=body_excerpt,
            context=context,
        )
