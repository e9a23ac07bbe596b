import logging
import time

logger = logging.getLogger(__name__)

# Longest body excerpt written to the log
MAX_LOGGED_BODY = 2000

LOGGED_CONTENT_TYPES = ("application/json", "text/")


def _excerpt(raw: bytes) -> str:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return "<binary body>"
    if len(text) > MAX_LOGGED_BODY:
        return text[:MAX_LOGGED_BODY] + "...<truncated>"
    return text


class RequestResponseLoggingMiddleware:
    """
    Logs every API call: method, path, status, duration and, for JSON or text
    payloads, an excerpt of the request and response bodies.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_body = ""
        content_type = request.META.get("CONTENT_TYPE", "")
        if request.method in ("POST", "PUT", "PATCH"):
            if content_type.startswith(LOGGED_CONTENT_TYPES):
                request_body = _excerpt(request.body)
            elif content_type:
                request_body = f"<{content_type}>"

        logger.info(
            "API request: method=%s path=%s body=%s",
            request.method,
            request.get_full_path(),
            request_body,
        )

        started = time.monotonic()
        response = self.get_response(request)
        elapsed_ms = (time.monotonic() - started) * 1000

        response_type = response.get("Content-Type", "")
        if getattr(response, "streaming", False):
            response_body = "<streaming>"
        elif response_type.startswith(LOGGED_CONTENT_TYPES):
            response_body = _excerpt(response.content)
        else:
            response_body = f"<{response_type}>"

        log = logger.warning if response.status_code >= 400 else logger.info
        log(
            "API response: method=%s path=%s status=%d duration_ms=%.1f body=%s",
            request.method,
            request.get_full_path(),
            response.status_code,
            elapsed_ms,
            response_body,
        )
        return response
