"""
CORS middleware driven by the origin allow-list.

Preflight requests are answered here: 204 with the echoed origin for an
allow-listed origin, 403 otherwise. Other responses get CORS headers only
when the origin is allowed.
"""

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..auth.gate import CorsPolicy
from ..utils.logging import get_logger_for_component


class CorsAllowListMiddleware(BaseHTTPMiddleware):

    def __init__(self, app: ASGIApp, policy: CorsPolicy):
        super().__init__(app)
        self.policy = policy
        self.logger = get_logger_for_component("api.cors")

    async def dispatch(self, request: Request, call_next) -> Response:
        origin = request.headers.get("origin")

        if request.method == "OPTIONS":
            if not self.policy.is_allowed(origin):
                self.logger.info(f"Rejected preflight from origin {origin!r}")
                return JSONResponse(
                    status_code=403, content={"success": False, "error": "Origin not allowed"}
                )
            return Response(status_code=204, headers=self.policy.preflight_headers(origin))

        response = await call_next(request)
        for name, value in self.policy.response_headers(origin).items():
            response.headers[name] = value
        return response


def client_ip(request: Request) -> str:
    """Client address, preferring proxy headers."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"
