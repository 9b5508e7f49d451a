"""HTTP client for the remote schematic generation service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol
from urllib.parse import urlparse, urlunparse

import google.auth.transport.requests
import google.oauth2.id_token
import httpx
from google.auth import exceptions as google_auth_exceptions
from starlette.concurrency import run_in_threadpool

from schemgen.jobs.errors import GenerationFailed

logger = logging.getLogger(__name__)

# Remote error bodies are echoed into job errors, so keep them short.
_ERROR_BODY_PREVIEW_BYTES = 200


class GenerationClient(Protocol):
  """Strategy contract: open a byte stream for one prompt."""

  def open_stream(self, prompt: str) -> AsyncIterator[AsyncIterator[bytes]]:
    """Async context manager yielding the generated artifact as byte chunks."""
    ...


class DirectGenerationClient:
  """Calls the generation endpoint without authentication (local or emulated runs)."""

  def __init__(self, endpoint_url: str, *, timeout_seconds: float = 60.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self.endpoint_url = endpoint_url
    self._timeout = httpx.Timeout(timeout_seconds)
    self._transport = transport

  async def _auth_headers(self) -> dict[str, str]:
    return {}

  @asynccontextmanager
  async def open_stream(self, prompt: str) -> AsyncIterator[AsyncIterator[bytes]]:
    """POST the prompt and yield the response body incrementally."""
    headers = await self._auth_headers()
    async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport, trust_env=False) as client:
      try:
        # httpx URL-encodes query params, so the prompt is sent verbatim.
        async with client.stream("POST", self.endpoint_url, params={"prompt": prompt}, headers=headers) as response:
          if response.is_error:
            body = await response.aread()
            preview = body[:_ERROR_BODY_PREVIEW_BYTES].decode("utf-8", errors="replace")
            raise GenerationFailed(f"Generation service returned {response.status_code}: {preview}")
          logger.debug("Generation stream opened status=%s content-type=%s", response.status_code, response.headers.get("content-type"))
          yield _iter_chunks(response)
      except httpx.TimeoutException as exc:
        raise GenerationFailed("Generation request timed out.", reason="timeout") from exc
      except httpx.HTTPError as exc:
        raise GenerationFailed(f"Generation request failed: {exc}") from exc


class IdTokenGenerationClient(DirectGenerationClient):
  """Calls the generation endpoint with a Google-signed identity token scoped to it."""

  def __init__(self, endpoint_url: str, *, timeout_seconds: float = 60.0, transport: httpx.AsyncBaseTransport | None = None, audience: str | None = None) -> None:
    super().__init__(endpoint_url, timeout_seconds=timeout_seconds, transport=transport)
    self.audience = audience or _service_origin(endpoint_url)

  async def _auth_headers(self) -> dict[str, str]:
    try:
      token = await run_in_threadpool(google.oauth2.id_token.fetch_id_token, google.auth.transport.requests.Request(), self.audience)
    except google_auth_exceptions.GoogleAuthError as exc:
      raise GenerationFailed(f"Could not obtain an identity token for {self.audience}: {exc}") from exc
    return {"Authorization": f"Bearer {token}"}


async def _iter_chunks(response: httpx.Response) -> AsyncIterator[bytes]:
  """Relay body chunks, mapping transport failures onto GenerationFailed."""
  try:
    async for chunk in response.aiter_bytes():
      if chunk:
        yield chunk
  except httpx.TimeoutException as exc:
    raise GenerationFailed("Generation stream timed out.", reason="timeout") from exc
  except httpx.HTTPError as exc:
    raise GenerationFailed(f"Generation stream failed: {exc}") from exc


def _service_origin(endpoint_url: str) -> str:
  """Cloud Run expects the service origin as the token audience."""
  parsed = urlparse(endpoint_url)
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", ""))
