"""
Memo Bridge Backend — Memo Service (Request Orchestrator)
==========================================================

What:  Turns one authenticated POST into one new Scrapbox page.
How:   authenticate → parse body → generate title → acquire CSRF → import.
Who:   Called by the catch-all route in routes/memo.py.

Orchestration Flow:
    ┌──────────┐   ┌──────────┐   ┌─────────┐   ┌─────────────┐   ┌──────────┐
    │   Auth   │──▶│ Validate │──▶│  Title  │──▶│ CSRF (GET)  │──▶│ Import   │
    │   401    │   │   400    │   │         │   │    502      │   │ (POST)   │
    └──────────┘   └──────────┘   └─────────┘   └─────────────┘   │   502    │
                                                                   └──────────┘

    Every failure is terminal. A page already created upstream is never
    rolled back (Scrapbox has no such operation), and nothing is retried.

Design Decision:
    MemoService is constructed with Settings and the two upstream services,
    and keeps no per-request state on self. Concurrent requests only share
    the read-only configuration and the HTTP connection pool.
"""

import logging
from typing import Callable, Mapping

import httpx

from memo_bridge.config import Settings
from memo_bridge.exceptions import AuthenticationError, MemoBridgeError, UpstreamError
from memo_bridge.middleware.request_id import request_id_var
from memo_bridge.schemas.memo import ImportBatch, ImportPage, MemoResponse, parse_body
from memo_bridge.services.auth import authenticate
from memo_bridge.services.csrf_service import build_csrf_acquirer
from memo_bridge.services.import_service import build_page_importer
from memo_bridge.services.title import generate_title
from memo_bridge.services.upstream_base import CsrfAcquirer, PageImporter

logger = logging.getLogger(__name__)


class MemoService:
    """
    Business logic for creating a memo page.

    Error Handling Strategy:
        Client errors raise AuthenticationError / ValidationError before any
        upstream call. Upstream errors propagate as UpstreamError subclasses.
        Anything unexpected during the upstream stage is wrapped in a generic
        UpstreamError("Unknown error") so the client still gets a 502.
    """

    def __init__(
        self,
        settings: Settings,
        csrf_acquirer: CsrfAcquirer,
        page_importer: PageImporter,
        title_factory: Callable[[], str] = generate_title,
    ):
        self.settings = settings
        self.csrf_acquirer = csrf_acquirer
        self.page_importer = page_importer
        self.title_factory = title_factory

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient,
        title_factory: Callable[[], str] = generate_title,
    ) -> "MemoService":
        """Wire the upstream services selected by settings onto one HTTP client."""
        return cls(
            settings=settings,
            csrf_acquirer=build_csrf_acquirer(settings, client),
            page_importer=build_page_importer(settings, client),
            title_factory=title_factory,
        )

    async def create_memo(self, headers: Mapping[str, str], raw_body: bytes) -> MemoResponse:
        """
        Complete workflow for one POST.

        Args:
            headers:  Inbound request headers (case-insensitive mapping)
            raw_body: Inbound body bytes, not yet parsed

        Returns:
            MemoResponse(ok=True, title=...) once Scrapbox accepted the page

        Raises:
            AuthenticationError: bearer credential missing or wrong
            ValidationError:     body is not `{"text": <string>}`
            UpstreamError:       CSRF acquisition or import failed
        """
        rid = request_id_var.get("")

        if not authenticate(headers, self.settings.api_token):
            raise AuthenticationError()

        memo = parse_body(raw_body)

        title = self.title_factory()
        batch = ImportBatch(pages=[ImportPage.from_text(title, memo.text)])
        project = self.settings.scrapbox_project

        logger.info(
            "[%s] Creating page %s in project %s (%d lines)",
            rid,
            title,
            project,
            len(batch.pages[0].lines),
        )

        try:
            csrf_token = await self.csrf_acquirer.acquire_token(project)
            await self.page_importer.import_pages(project, batch, csrf_token)
        except MemoBridgeError:
            raise
        except Exception as e:
            logger.error("[%s] Unexpected error while creating page: %s", rid, str(e), exc_info=True)
            raise UpstreamError(
                message="Unknown error",
                context={"original_error": type(e).__name__},
            )

        return MemoResponse(ok=True, title=title)
