"""HTTP middleware."""

import uuid
from typing import Any, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from tenancy_core.observability import RequestContext, Timer, emit_timer, get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Stamps every request with a request id.

    The id is taken from the incoming header when present, bound to the
    logging context for the duration of the request and echoed back on the
    response.
    """

    def __init__(self, app: Any, header_name: str = "X-Request-ID") -> None:
        """Initialize request context middleware.

        Args:
            app: The ASGI application
            header_name: Header carrying the request id
        """
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        async with RequestContext(request_id=request_id, operation=f"{request.method} {request.url.path}"):
            with Timer() as timer:
                response = await call_next(request)
            logger.info(
                "Request handled",
                context={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                },
                duration_ms=timer.duration_ms,
            )
            emit_timer("http.request", timer.duration_ms, {"status_code": response.status_code})

        response.headers[self.header_name] = request_id
        return response
