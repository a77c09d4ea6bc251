"""
Memo Bridge Backend — Abstract Upstream Interfaces
===================================================

What:  Contracts for the two Scrapbox calls made per request.
Why:   Scrapbox exposes no stable, documented API for either step, and several
       incompatible contracts have been observed. Each contract lives in its
       own implementation; settings pick one (see csrf_service.py and
       import_service.py). Behaviors are never mixed inside one class.
How:   Implementations receive a shared httpx.AsyncClient and the session
       cookie; tests drive them with httpx.MockTransport.
"""

from abc import ABC, abstractmethod

import httpx

from memo_bridge.schemas.memo import ImportBatch

SESSION_COOKIE_NAME = "connect.sid"
CSRF_HEADER_NAME = "X-CSRF-TOKEN"


class ScrapboxEndpoint:
    """Shared plumbing: base URL, session cookie and the HTTP client."""

    def __init__(self, client: httpx.AsyncClient, base_url: str, session_id: str):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.session_id = session_id

    def session_headers(self) -> dict:
        return {"Cookie": f"{SESSION_COOKIE_NAME}={self.session_id}"}


class CsrfAcquirer(ScrapboxEndpoint, ABC):
    """
    Obtains a CSRF token for one request.

    Contract:
        - Exactly one outbound request per call
        - Returns the token; "" means "send no token header"
        - Tokens are never cached between calls
        - Failures raise CsrfFetchError or CsrfTokenNotFoundError
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        session_id: str,
        token_required: bool = True,
    ):
        super().__init__(client, base_url, session_id)
        self.token_required = token_required

    @abstractmethod
    async def acquire_token(self, project: str) -> str:
        ...


class PageImporter(ScrapboxEndpoint, ABC):
    """
    Submits an ImportBatch to the project's import endpoint.

    Contract:
        - Exactly one POST per call
        - The token header is attached only when the token is non-empty
        - A non-2xx answer raises ImportApiError; success returns None
    """

    def import_url(self, project: str) -> str:
        return f"{self.base_url}/api/page-data/import/{project}.json"

    def request_headers(self, csrf_token: str) -> dict:
        headers = self.session_headers()
        if csrf_token:
            headers[CSRF_HEADER_NAME] = csrf_token
        return headers

    @abstractmethod
    async def import_pages(self, project: str, batch: ImportBatch, csrf_token: str) -> None:
        ...
