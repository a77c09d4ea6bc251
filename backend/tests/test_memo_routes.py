"""
Memo Bridge Backend — Endpoint Tests
=====================================

What:  The full app (middleware, route, MemoService, upstream services)
       driven over ASGI, with Scrapbox replaced by ScrapboxStub.

What we test:
    ✅ OPTIONS → 204 empty, every other non-POST method → 405, on any path
    ✅ 401 for wrong/missing bearer token regardless of body
    ✅ 400 for invalid JSON and for a missing `text`
    ✅ Happy path: 200 {ok, title}; imported lines = [title, *text lines]
    ✅ 502 for CSRF and import failures, with the upstream detail
    ✅ Two identical requests create two pages (no deduplication)
"""

import json
import re

import httpx
import pytest

from memo_bridge.main import create_app

from conftest import PROJECT_PAGE_HTML, TITLE_PATTERN, auth_headers, make_settings


class TestMethodGating:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/", "/memo", "/docs", "/deeply/nested/path"])
    async def test_get_is_405(self, test_client, scrapbox, path):
        response = await test_client.get(path)
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert response.headers["Allow"] == "POST, OPTIONS"
        assert scrapbox.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE"])
    async def test_other_methods_are_405(self, test_client, method):
        response = await test_client.request(method, "/", headers=auth_headers(), json={"text": "x"})
        assert response.status_code == 405

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["TRACE", "PROPFIND", "FOO"])
    async def test_unlisted_methods_get_the_same_405(self, test_client, scrapbox, method):
        response = await test_client.request(method, "/")
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}
        assert response.headers["Allow"] == "POST, OPTIONS"
        assert scrapbox.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/", "/memo"])
    async def test_options_is_204(self, test_client, scrapbox, path):

        response = await test_client.options(path)
        assert response.status_code == 204
        assert response.content == b""
        assert scrapbox.requests == []

    @pytest.mark.asyncio
    async def test_request_id_header(self, test_client):
        response = await test_client.get("/", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    @pytest.mark.asyncio
    async def test_malformed_request_id_is_replaced(self, test_client):
        response = await test_client.get("/", headers={"X-Request-ID": "bad id with spaces"})
        assert re.match(r"^[0-9a-f-]{8}$", response.headers["X-Request-ID"])


class TestAuthAndValidation:

    @pytest.mark.asyncio
    async def test_wrong_token_is_401(self, test_client, scrapbox):
        response = await test_client.post("/memo", headers=auth_headers("wrong"), json={"text": "hello"})
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert scrapbox.requests == []

    @pytest.mark.asyncio
    async def test_missing_token_is_401_even_with_bad_body(self, test_client):
        response = await test_client.post("/memo", content=b"not json")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_missing_text_is_400(self, test_client, scrapbox):
        response = await test_client.post("/memo", headers=auth_headers(), json={})
        assert response.status_code == 400
        assert "text" in response.json()["error"]
        assert scrapbox.requests == []

    @pytest.mark.asyncio
    async def test_non_string_text_is_400(self, test_client):
        response = await test_client.post("/memo", headers=auth_headers(), json={"text": 123})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing or invalid 'text' field"}

    @pytest.mark.asyncio
    async def test_invalid_json_is_400(self, test_client):
        response = await test_client.post(
            "/",
            headers={**auth_headers(), "Content-Type": "application/json"},
            content=b"not json",
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON"}


class TestCreatePage:

    @pytest.mark.asyncio
    async def test_success(self, test_client, scrapbox):
        scrapbox.add(200, text=PROJECT_PAGE_HTML)
        scrapbox.add(200, text="ok")

        response = await test_client.post("/memo", headers=auth_headers(), json={"text": "hello"})

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert re.match(TITLE_PATTERN, body["title"])

        csrf_call, import_call = scrapbox.requests
        assert csrf_call.method == "GET"
        assert str(csrf_call.url) == "https://scrapbox.io/test-project/"
        assert csrf_call.headers["Cookie"] == "connect.sid=test-sid"

        assert import_call.method == "POST"
        assert str(import_call.url) == "https://scrapbox.io/api/page-data/import/test-project.json"
        assert import_call.headers["X-CSRF-TOKEN"] == "csrf-123"
        page = json.loads(import_call.content)["pages"][0]
        assert page["title"] == body["title"]
        assert page["lines"] == [body["title"], "hello"]

    @pytest.mark.asyncio
    async def test_multiline_text(self, test_client, scrapbox):
        scrapbox.add(200, text=PROJECT_PAGE_HTML).add(200)

        response = await test_client.post(
            "/memo", headers=auth_headers(), json={"text": "テスト投稿\n\n二行目"}
        )

        assert response.status_code == 200
        lines = json.loads(scrapbox.requests[1].content)["pages"][0]["lines"]
        assert lines[1:] == ["テスト投稿", "", "二行目"]

    @pytest.mark.asyncio
    async def test_no_tag_line_is_appended(self, test_client, scrapbox):
        scrapbox.add(200, text=PROJECT_PAGE_HTML).add(200)

        await test_client.post("/memo", headers=auth_headers(), json={"text": "hello"})

        lines = json.loads(scrapbox.requests[1].content)["pages"][0]["lines"]
        assert lines[-1] == "hello"

    @pytest.mark.asyncio
    async def test_csrf_failure_is_502(self, test_client, scrapbox):
        scrapbox.add(500, text="error")

        response = await test_client.post("/memo", headers=auth_headers(), json={"text": "test"})

        assert response.status_code == 502
        assert "CSRF" in response.json()["error"]
        assert len(scrapbox.requests) == 1

    @pytest.mark.asyncio
    async def test_csrf_not_found_is_502(self, test_client, scrapbox):
        scrapbox.add(200, text="<html><body>maintenance</body></html>")

        response = await test_client.post("/memo", headers=auth_headers(), json={"text": "test"})

        assert response.status_code == 502
        assert response.json()["error"].startswith("CSRF token not found")
        assert len(scrapbox.requests) == 1

    @pytest.mark.asyncio
    async def test_import_failure_is_502(self, test_client, scrapbox):
        scrapbox.add(200, text=PROJECT_PAGE_HTML)
        scrapbox.add(403, text="forbidden")

        response = await test_client.post("/memo", headers=auth_headers(), json={"text": "test"})

        assert response.status_code == 502
        assert "Import API error 403" in response.json()["error"]
        assert "forbidden" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_upstream_unreachable_is_502(self, test_client, scrapbox):
        scrapbox.add_error(httpx.ConnectError("connection refused"))

        response = await test_client.post("/memo", headers=auth_headers(), json={"text": "test"})

        assert response.status_code == 502
        assert response.json() == {"error": "Failed to fetch CSRF token: connection refused"}

    @pytest.mark.asyncio
    async def test_identical_requests_are_not_deduplicated(self, scrapbox, http_client):
        titles = iter(["メモ_2025-01-15_1430", "メモ_2025-01-15_1431"])
        app = create_app(
            settings=make_settings(),
            http_client=http_client,
            title_factory=lambda: next(titles),
        )
        for _ in range(2):
            scrapbox.add(200, text=PROJECT_PAGE_HTML).add(200)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            first = await client.post("/memo", headers=auth_headers(), json={"text": "same"})
            second = await client.post("/memo", headers=auth_headers(), json={"text": "same"})

        assert first.status_code == second.status_code == 200
        # Each request fetched its own token; nothing is cached
        assert [r.method for r in scrapbox.requests] == ["GET", "POST", "GET", "POST"]
        imported = [
            json.loads(r.content)["pages"][0] for r in scrapbox.requests if r.method == "POST"
        ]
        assert [page["title"] for page in imported] == [first.json()["title"], second.json()["title"]]
        assert imported[0]["title"] == "メモ_2025-01-15_1430"
        assert imported[1]["title"] == "メモ_2025-01-15_1431"
        assert [page["lines"][1:] for page in imported] == [["same"], ["same"]]


class TestAlternativeUpstreamContract:

    """users/me token + multipart upload, selected through settings."""

    @pytest.mark.asyncio
    async def test_user_api_and_multipart(self, scrapbox, http_client):
        settings = make_settings(csrf_strategy="user_api", import_encoding="multipart")
        app = create_app(settings=settings, http_client=http_client)
        scrapbox.add(200, json={"csrfToken": "csrf-123"})
        scrapbox.add(200, text="ok")

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/", headers=auth_headers(), json={"text": "テスト投稿"})

        assert response.status_code == 200
        csrf_call, import_call = scrapbox.requests
        assert str(csrf_call.url) == "https://scrapbox.io/api/users/me"
        assert import_call.headers["X-CSRF-TOKEN"] == "csrf-123"
        assert import_call.headers["Content-Type"].startswith("multipart/form-data")
        assert b'name="import-file"' in import_call.content

    @pytest.mark.asyncio
    async def test_optional_token_imports_without_header(self, scrapbox, http_client):
        app = create_app(settings=make_settings(csrf_token_required=False), http_client=http_client)
        scrapbox.add(200, text="<html></html>")
        scrapbox.add(200)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/", headers=auth_headers(), json={"text": "x"})

        assert response.status_code == 200
        assert "X-CSRF-TOKEN" not in scrapbox.requests[1].headers
