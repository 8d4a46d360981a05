import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from sitequota.core.logging import latency_bucket_ms, request_id_ctx_var
from sitequota.core.metrics import http_requests_total

logger = logging.getLogger("sitequota")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and count the response.

    A caller-supplied id is reused so quota checks can be traced back to the
    request handler that asked for them.
    """

    def __init__(self, app, header_name: str = "x-request-id"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or uuid4().hex
        request.state.request_id = rid

        token = request_id_ctx_var.set(rid)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[self.header_name] = rid
        http_requests_total.inc({"method": request.method, "status": str(response.status_code)})
        logger.info(
            "request.complete",
            extra={
                "request_id": rid,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_bucket": latency_bucket_ms(elapsed_ms),
            },
        )
        return response
