"""
Memo Bridge Backend — Scrapbox Page Import
===========================================

What:  POSTs an ImportBatch to `<base>/api/page-data/import/<project>.json`.
How:   Two submission encodings, selected by IMPORT_ENCODING:
           json       → the batch as an application/json body (default)
           multipart  → form field `import-file` holding `import.json`
       Both attach the session cookie and, when present, X-CSRF-TOKEN.
"""

import json
import logging

import httpx

from memo_bridge.config import Settings
from memo_bridge.exceptions import ImportApiError
from memo_bridge.middleware.request_id import request_id_var
from memo_bridge.schemas.memo import ImportBatch
from memo_bridge.services.upstream_base import PageImporter

logger = logging.getLogger(__name__)


class JsonPageImporter(PageImporter):
    """Sends the batch as a JSON request body."""

    def build_request(self, project: str, batch: ImportBatch, csrf_token: str) -> httpx.Request:
        return self.client.build_request(
            "POST",
            self.import_url(project),
            headers=self.request_headers(csrf_token),
            json=batch.model_dump(),
        )

    async def import_pages(self, project: str, batch: ImportBatch, csrf_token: str) -> None:
        request = self.build_request(project, batch, csrf_token)
        await _submit(self, request, batch)


class MultipartPageImporter(PageImporter):
    """Uploads the batch as a JSON file in a multipart form, like the web UI does."""

    FORM_FIELD = "import-file"
    FILENAME = "import.json"

    def build_request(self, project: str, batch: ImportBatch, csrf_token: str) -> httpx.Request:
        payload = json.dumps(batch.model_dump(), ensure_ascii=False).encode("utf-8")
        return self.client.build_request(
            "POST",
            self.import_url(project),
            headers=self.request_headers(csrf_token),
            files={self.FORM_FIELD: (self.FILENAME, payload, "application/json")},
        )

    async def import_pages(self, project: str, batch: ImportBatch, csrf_token: str) -> None:
        request = self.build_request(project, batch, csrf_token)
        await _submit(self, request, batch)


async def _submit(importer: PageImporter, request: httpx.Request, batch: ImportBatch) -> None:
    rid = request_id_var.get("")
    try:
        response = await importer.client.send(request)
    except httpx.RequestError as e:
        logger.warning("[%s] Import API unreachable: %s", rid, type(e).__name__)
        raise ImportApiError(detail=str(e) or type(e).__name__, context={"url": str(request.url)})

    if not response.is_success:
        logger.warning("[%s] Import API answered %d", rid, response.status_code)
        raise ImportApiError(
            upstream_status=response.status_code,
            body=response.text,
            context={"url": str(request.url)},
        )

    logger.info(
        "[%s] Imported %d page(s): %s",
        rid,
        len(batch.pages),
        ", ".join(p.title for p in batch.pages),
    )


IMPORTERS = {
    "json": JsonPageImporter,
    "multipart": MultipartPageImporter,
}


def build_page_importer(settings: Settings, client: httpx.AsyncClient) -> PageImporter:
    """Instantiate the importer named by settings.import_encoding."""
    importer_cls = IMPORTERS[settings.import_encoding]
    return importer_cls(
        client=client,
        base_url=settings.scrapbox_base_url,
        session_id=settings.scrapbox_sid,
    )
