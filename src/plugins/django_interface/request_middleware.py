import uuid

import structlog

REQUEST_ID_HEADER = "HTTP_X_REQUEST_ID"


class RequestContextMiddleware:
    """Vincula `request_id` (e usuário) ao contexto do structlog durante a request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = request.META.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.path,
        )
        try:
            response = self.get_response(request)
            response["X-Request-ID"] = request_id
        finally:
            structlog.contextvars.clear_contextvars()
        return response
