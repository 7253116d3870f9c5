import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

from ibdaily.core.logging import request_context

logger = logging.getLogger("ibdaily.http")

REQUEST_ID_HEADER = "x-request-id"
MAX_INBOUND_ID_LENGTH = 128


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Correlate each request with one id.

    A caller-supplied ``x-request-id`` is reused when it is short enough to be
    a real id; otherwise a fresh one is minted. The id is echoed on the
    response and bound for every log line written while handling it. The
    completion line carries the acting ``user_id``/``cohort_id`` when the
    route takes them as query parameters.
    """

    def __init__(self, app, header_name: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        inbound = request.headers.get(self.header_name)
        if inbound and len(inbound) > MAX_INBOUND_ID_LENGTH:
            inbound = None

        started = time.perf_counter()
        with request_context(inbound) as rid:
            request.state.request_id = rid
            response = await call_next(request)
            response.headers[self.header_name] = rid
            logger.info(
                "request.complete",
                extra={
                    "request_id": rid,
                    "user_id": request.query_params.get("user_id"),
                    "cohort_id": request.query_params.get("cohort_id"),
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                },
            )
        return response
