from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

_SUCCESS_CODES = {200: "ok", 201: "created", 202: "accepted"}
_SKIPPED_HEADERS = {"content-length", "content-type"}


def _success_code(status_code: int) -> str:
    return _SUCCESS_CODES.get(status_code, "ok")


def _success_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Success"


def build_success_envelope(data: Any, status_code: int) -> dict[str, Any]:
    return {
        "code": _success_code(status_code),
        "message": _success_message(status_code),
        "data": data,
        "details": {},
    }


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    return "code" in payload and "message" in payload and ("data" in payload or "details" in payload)


def _rewrap(original: Response, status_code: int, content: dict[str, Any]) -> JSONResponse:
    wrapped = JSONResponse(status_code=status_code, content=content)
    for key, value in original.headers.items():
        if key.lower() in _SKIPPED_HEADERS:
            continue
        wrapped.headers[key] = value
    return wrapped


async def _read_body(response: Response) -> bytes:
    body = getattr(response, "body", None)
    if body is not None:
        return body
    chunks = [chunk async for chunk in response.body_iterator]
    return b"".join(chunk if isinstance(chunk, bytes) else chunk.encode() for chunk in chunks)


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap every 2xx JSON body as ``{"code", "message", "data", "details"}``.

    The OpenAPI document and the interactive docs pages pass through untouched.
    """

    def __init__(self, app, excluded_paths: set[str] | None = None) -> None:
        super().__init__(app)
        self.excluded_paths = excluded_paths or set()

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)

        if request.url.path in self.excluded_paths:
            return response

        if response.status_code < 200 or response.status_code >= 300:
            return response

        if response.status_code == 204:
            return _rewrap(response, 200, build_success_envelope(None, 200))

        if "application/json" not in response.headers.get("content-type", ""):
            return response

        raw = await _read_body(response)
        try:
            payload = json.loads(raw) if raw else None
        except ValueError:
            return Response(
                content=raw,
                status_code=response.status_code,
                headers=dict(response.headers),
            )

        if _is_enveloped(payload):
            normalized = dict(payload)
            normalized.setdefault("data", None)
            normalized.setdefault("details", {})
            return _rewrap(response, response.status_code, normalized)

        return _rewrap(response, response.status_code, build_success_envelope(payload, response.status_code))


def _docs_paths(app) -> set[str]:
    paths = {app.openapi_url, app.docs_url, app.redoc_url, app.swagger_ui_oauth2_redirect_url}
    return {path for path in paths if path}


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware, excluded_paths=_docs_paths(app))
