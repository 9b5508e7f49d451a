import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from schemgen.jobs.errors import AlreadyExists, EnqueueFailed, FailureNotRecorded, InvalidArgument, JobNotFound, PipelineError

_PIPELINE_STATUS_CODES: dict[type[PipelineError], int] = {
  InvalidArgument: status.HTTP_400_BAD_REQUEST,
  JobNotFound: status.HTTP_404_NOT_FOUND,
  AlreadyExists: status.HTTP_409_CONFLICT,
  EnqueueFailed: status.HTTP_503_SERVICE_UNAVAILABLE,
  FailureNotRecorded: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  # Keep native JSON primitives unchanged.
  if value is None or isinstance(value, bool | int | float | str):
    return value
  # Recursively sanitize mapping values so nested contexts remain serializable.
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  # Normalize iterable containers to lists for deterministic JSON encoding.
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  # Serialize exception instances explicitly to avoid leaking non-serializable objects.
  if isinstance(value, BaseException):
    error_message = str(value)
    if error_message:
      return f"{type(value).__name__}: {error_message}"
    return type(value).__name__
  return str(value)


def _error_payload(detail: Any, *, code: str | None = None, request_id: str | None = None) -> dict[str, Any]:
  """Build a safe error payload that avoids leaking internal details to clients."""
  payload: dict[str, Any] = {"detail": detail}
  if code:
    payload["code"] = code
  # Attach a request id so support can correlate client reports to server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  # Strip payload values so logs are useful without leaking request bodies.
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx

    sanitized.append(_coerce_json_safe(scrubbed))

  return sanitized


def _pipeline_status_code(exc: PipelineError) -> int:
  for error_type, status_code in _PIPELINE_STATUS_CODES.items():
    if isinstance(exc, error_type):
      return status_code
  return status.HTTP_500_INTERNAL_SERVER_ERROR


async def pipeline_exception_handler(request: Request, exc: PipelineError) -> JSONResponse:
  """Map pipeline errors onto HTTP statuses; only client errors echo their message."""
  request_id = getattr(request.state, "request_id", None)
  status_code = _pipeline_status_code(exc)
  logger = logging.getLogger("uvicorn.error")
  if status_code >= 500:
    logger.error("Pipeline error request_id=%s path=%s error_type=%s: %s", request_id, request.url.path, type(exc).__name__, exc, exc_info=True)
    detail = "Service Unavailable" if status_code == status.HTTP_503_SERVICE_UNAVAILABLE else "Internal Server Error"
    return JSONResponse(status_code=status_code, content=_error_payload(detail, code=exc.code, request_id=request_id))

  logger.info("Rejected request request_id=%s path=%s code=%s: %s", request_id, request.url.path, exc.code, exc)
  return JSONResponse(status_code=status_code, content=_error_payload(str(exc), code=exc.code, request_id=request_id))


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger = logging.getLogger("uvicorn.error")
  request_id = getattr(request.state, "request_id", None)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors for debugging without leaking payloads."""
  request_id = getattr(request.state, "request_id", None)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  # Keep validation logs concise because 422s are client-correctable and expected.
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle FastAPI HTTPExceptions while avoiding leaking internal diagnostics."""
  from schemgen.config import get_settings

  settings = get_settings()
  request_id = getattr(request.state, "request_id", None)
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail, exc_info=True)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))

  # Log 4xx HTTPExceptions when explicitly enabled for debugging.
  if settings.log_http_4xx:
    logger = logging.getLogger("uvicorn.error")
    logger.warning("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)

  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id), headers=exc.headers)
