"""
Memo Bridge Backend — CSRF Token Acquisition
=============================================

What:  Obtains the anti-forgery token Scrapbox expects on the import request.
Why:   Scrapbox has no stable token endpoint. The token has to be scraped from
       an authenticated response, and where it lives has changed over time.
How:   Two upstream contracts are supported, selected by CSRF_STRATEGY:

    page (default)
        GET <base>/<project>/ with the session cookie, then try in order,
        stopping at the first non-empty hit:
            1. <meta name="csrf-token" content="...">
            2. inline script assignment (window._csrf = "...", csrfToken: "...")
            3. a Set-Cookie header whose cookie name contains "csrf"

    user_api
        GET <base>/api/users/me with the session cookie and read the
        `csrfToken` field of the JSON body.

Failure policy:
    Non-2xx or unreachable resource → CsrfFetchError (502)
    2xx but no token anywhere        → CsrfTokenNotFoundError (502), or ""
                                       when CSRF_TOKEN_REQUIRED=false
"""

import logging
import re
from typing import Callable, List, Optional, Tuple

import httpx
from bs4 import BeautifulSoup

from memo_bridge.config import Settings
from memo_bridge.exceptions import CsrfFetchError, CsrfTokenNotFoundError
from memo_bridge.middleware.request_id import request_id_var
from memo_bridge.services.upstream_base import CsrfAcquirer

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Extraction strategies (pure functions over one response)
# ══════════════════════════════════════════════════════════════════════════

# Matched case-insensitively against the whole body, first hit wins
SCRIPT_TOKEN_PATTERNS = [
    re.compile(r"""(?<![\w$])_csrf\s*=\s*["']([^"'\s]+)["']"""),
    re.compile(r"""["']?\bcsrf[-_]?token["']?\s*[:=]\s*["']([^"'\s]+)["']""", re.IGNORECASE),
]


def token_from_meta(html: str) -> str:
    """Return the content of the first <meta> whose name mentions csrf."""
    # libxml2 stops at NUL; the page may be arbitrary bytes
    soup = BeautifulSoup(html.replace("\x00", ""), "lxml")
    for m in soup.find_all("meta"):
        name = (m.get("name") or m.get("property") or m.get("http-equiv") or "").lower()
        # csrf-param names the form field, not the token
        if "csrf" in name and "param" not in name:
            content = (m.get("content") or "").strip()
            if content:
                return content
    return ""


def token_from_script(html: str) -> str:
    """Return a token assigned inline in a script (`_csrf = "..."` and friends)."""
    for pattern in SCRIPT_TOKEN_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1)
    return ""


def token_from_set_cookie(set_cookie_values: List[str]) -> str:
    """Return the value of the first Set-Cookie whose cookie name contains csrf."""
    for raw in set_cookie_values:
        pair = raw.split(";", 1)[0]
        if "=" not in pair:
            continue
        name, value = pair.split("=", 1)
        if "csrf" in name.strip().lower():
            value = value.strip().strip('"')
            if value:
                return value
    return ""


# ══════════════════════════════════════════════════════════════════════════
# Acquirers
# ══════════════════════════════════════════════════════════════════════════


async def _fetch(acquirer: CsrfAcquirer, url: str) -> httpx.Response:
    """GET a token resource; translate transport errors and non-2xx answers."""
    rid = request_id_var.get("")
    request = acquirer.client.build_request("GET", url, headers=acquirer.session_headers())
    try:
        response = await acquirer.client.send(request)
    except httpx.RequestError as e:
        logger.warning("[%s] CSRF resource unreachable: %s", rid, type(e).__name__)
        raise CsrfFetchError(detail=str(e) or type(e).__name__, context={"url": url})

    if not response.is_success:
        logger.warning("[%s] CSRF resource answered %d", rid, response.status_code)
        raise CsrfFetchError(
            upstream_status=response.status_code,
            body=response.text,
            context={"url": url},
        )
    return response


class PageCsrfAcquirer(CsrfAcquirer):
    """Scrapes the token from the project's HTML page."""

    def resource_url(self, project: str) -> str:
        return f"{self.base_url}/{project}/"

    def strategies(self, response: httpx.Response) -> List[Tuple[str, Callable[[], str]]]:
        """Ordered (name, extractor) pairs; evaluated lazily."""
        body = response.text
        return [
            ("meta", lambda: token_from_meta(body)),
            ("script", lambda: token_from_script(body)),
            ("set-cookie", lambda: token_from_set_cookie(response.headers.get_list("set-cookie"))),
        ]

    async def acquire_token(self, project: str) -> str:
        url = self.resource_url(project)
        response = await _fetch(self, url)

        for name, extract in self.strategies(response):
            token = extract()
            if token:
                logger.debug("[%s] CSRF token found via %s", request_id_var.get(""), name)
                return token

        return _not_found(self, url)


class UserApiCsrfAcquirer(CsrfAcquirer):
    """Reads `csrfToken` from the logged-in user's JSON profile."""

    def resource_url(self, project: str) -> str:
        return f"{self.base_url}/api/users/me"

    async def acquire_token(self, project: str) -> str:
        url = self.resource_url(project)
        response = await _fetch(self, url)

        try:
            data = response.json()
        except ValueError:
            data = None
        token: Optional[str] = data.get("csrfToken") if isinstance(data, dict) else None
        if isinstance(token, str) and token:
            return token

        return _not_found(self, url)


def _not_found(acquirer: CsrfAcquirer, url: str) -> str:
    if acquirer.token_required:
        logger.warning("[%s] No CSRF token in response from %s", request_id_var.get(""), url)
        raise CsrfTokenNotFoundError(source=url)
    logger.info("[%s] No CSRF token found; continuing without one", request_id_var.get(""))
    return ""


ACQUIRERS = {
    "page": PageCsrfAcquirer,
    "user_api": UserApiCsrfAcquirer,
}


def build_csrf_acquirer(settings: Settings, client: httpx.AsyncClient) -> CsrfAcquirer:
    """Instantiate the acquirer named by settings.csrf_strategy."""
    acquirer_cls = ACQUIRERS[settings.csrf_strategy]
    return acquirer_cls(
        client=client,
        base_url=settings.scrapbox_base_url,
        session_id=settings.scrapbox_sid,
        token_required=settings.csrf_token_required,
    )
