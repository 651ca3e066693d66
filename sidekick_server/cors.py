"""CORS for the editor plugin.

Origins are an explicit allow-list plus one regex for the preview/production
hosts. Every preflight request is answered with 204 No Content.
"""

from typing import Any

from starlette.datastructures import Headers
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response

from sidekick_server.config import Settings

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = ["content-type", "authorization", "x-api-key"]
MAX_AGE = 86400


class PreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose preflight responses are always an empty 204.

    ``Access-Control-Allow-Origin`` is present only for allowed origins; the
    browser enforces the advertised methods and headers itself.
    """

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        return Response(status_code=204, headers=headers)


def cors_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for ``app.add_middleware(PreflightCORSMiddleware, ...)``."""
    return {
        "allow_origins": settings.allowed_origins_list,
        "allow_origin_regex": settings.allowed_origin_regex or None,
        "allow_methods": ALLOWED_METHODS,
        "allow_headers": ALLOWED_HEADERS,
        "max_age": MAX_AGE,
    }
