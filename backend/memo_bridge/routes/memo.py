"""
Memo Bridge Backend — Memo Route Handler
=========================================

What:  The single endpoint. Any path is accepted; the method decides.
How:
    OPTIONS        → 204, empty body (no auth, no upstream calls)
    POST           → MemoService.create_memo() → 200 {"ok": true, "title": ...}
    anything else  → 405 {"error": "Method not allowed"}

Error responses (rendered by the handler in main.py):
    400 ValidationError, 401 AuthenticationError, 405 MethodNotAllowedError,
    502 UpstreamError
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from memo_bridge.exceptions import MethodNotAllowedError
from memo_bridge.schemas.memo import ErrorResponse, MemoResponse
from memo_bridge.services.memo_service import MemoService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Memo"])

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_memo_service(request: Request) -> MemoService:
    """Dependency: the MemoService built by create_app()."""
    return request.app.state.memo_service


@router.api_route(
    "/{path:path}",
    methods=ALL_METHODS,
    response_model=None,
    responses={
        200: {"description": "Page created", "model": MemoResponse},
        204: {"description": "Preflight"},
        400: {"description": "Invalid body", "model": ErrorResponse},
        401: {"description": "Missing or wrong bearer token", "model": ErrorResponse},
        405: {"description": "Method not allowed", "model": ErrorResponse},
        502: {"description": "Scrapbox request failed", "model": ErrorResponse},
    },
    summary="Create a Scrapbox memo page",
)
async def handle_memo(
    request: Request,
    path: str,
    memo_service: MemoService = Depends(get_memo_service),
):
    """
    Dispatch on method, then delegate POSTs to MemoService.

    The body is read raw so that MemoService, not FastAPI, decides how an
    invalid payload is reported (400 instead of 422).
    """
    if request.method == "OPTIONS":
        return Response(status_code=204)

    if request.method != "POST":
        raise MethodNotAllowedError(method=request.method)

    raw_body = await request.body()
    return await memo_service.create_memo(headers=request.headers, raw_body=raw_body)
