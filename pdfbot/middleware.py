from typing import Any, Awaitable, Callable, Dict, List, Tuple

import structlog
from starlette.responses import JSONResponse

logger = structlog.get_logger(__name__)

PREFLIGHT_HEADERS: List[Tuple[bytes, bytes]] = [
    (b"access-control-allow-origin", b"*"),
    (b"access-control-allow-methods", b"GET, POST, OPTIONS"),
    (b"access-control-allow-headers", b"Content-Type, X-API-Key"),
    (b"content-length", b"0"),
]


class PermissiveCORSMiddleware:
    """
    Answer every OPTIONS pre-flight with 200 and an empty body, and make sure
    every other response carries Access-Control-Allow-Origin: *.
    Register it outside ErrorResponseMiddleware.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(
        self,
        scope: Dict[str, Any],
        receive: Callable[..., Awaitable[Dict[str, Any]]],
        send: Callable[..., Awaitable[None]],
    ) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        if (scope.get("method") or "").upper() == "OPTIONS":
            await send({"type": "http.response.start", "status": 200, "headers": PREFLIGHT_HEADERS})
            await send({"type": "http.response.body", "body": b""})
            return

        async def send_wrapper(message: Dict[str, Any]) -> None:
            if message.get("type") == "http.response.start":
                headers: List[Tuple[bytes, bytes]] = list(message.get("headers") or [])
                present = {k.lower() for k, _ in headers}

                if b"access-control-allow-origin" not in present:
                    headers.append((b"access-control-allow-origin", b"*"))
                if b"access-control-allow-methods" not in present:
                    headers.append((b"access-control-allow-methods", b"GET, POST, OPTIONS"))

                message = {**message, "headers": headers}
            await send(message)

        await self.app(scope, receive, send_wrapper)


class ErrorResponseMiddleware:
    """
    Turn exceptions escaping the app into a JSON 500 with the same body shape
    as the other error responses. Once the response has started the exception
    is re-raised.
    """

    def __init__(self, app):
        self.app = app

    async def __call__(
        self,
        scope: Dict[str, Any],
        receive: Callable[..., Awaitable[Dict[str, Any]]],
        send: Callable[..., Awaitable[None]],
    ) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        started = False

        async def send_wrapper(message: Dict[str, Any]) -> None:
            nonlocal started
            if message.get("type") == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            logger.error("unhandled_error", path=scope.get("path"), error=str(e), exc_info=True)
            if started:
                raise
            response = JSONResponse(status_code=500, content={'success': False, 'error': 'Internal server error'})
            await response(scope, receive, send)
