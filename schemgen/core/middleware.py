import logging
import re
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

logger = logging.getLogger("schemgen.core.middleware")

# Headers Cloud Tasks attaches to every delivery of a work item.
TASK_NAME_HEADER = "x-cloudtasks-taskname"
TASK_RETRY_HEADER = "x-cloudtasks-taskretrycount"

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def _request_id(headers: Headers) -> str:
  """Reuse a well-formed caller request id so queue retries share one id across hops."""
  supplied = headers.get("x-request-id", "")
  if _REQUEST_ID_PATTERN.match(supplied):
    return supplied
  return str(uuid.uuid4())


def _delivery_tag(headers: Headers) -> str:
  """Describe the queue delivery behind a worker request, or nothing for client calls."""
  task_name = headers.get(TASK_NAME_HEADER)
  if not task_name:
    return ""
  retry_count = headers.get(TASK_RETRY_HEADER, "0")
  return f" task={task_name} retry={retry_count}"


class RequestLoggingMiddleware:
  """Log one line per request and response, tagged with a request id and the queue delivery."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    headers = Headers(scope=scope)
    request_id = _request_id(headers)
    scope.setdefault("state", {})["request_id"] = request_id
    tag = _delivery_tag(headers)

    # Paths only; query values stay out of the log.
    start_time = time.time()
    logger.info("Incoming request request_id=%s %s %s%s", request_id, scope.get("method", "UNKNOWN"), scope.get("path", ""), tag)

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id

      await send(message)

    await self.app(scope, receive, send_wrapper)

    process_time = (time.time() - start_time) * 1000
    # A 5xx on a delivery means the queue will retry it.
    level = logging.WARNING if tag and (status_code or 0) >= 500 else logging.INFO
    logger.log(level, "Response request_id=%s status=%s (took %.2fms)%s", request_id, status_code or 0, process_time, tag)
