"""Generation client tests against an in-process httpx transport."""

from __future__ import annotations

from dataclasses import replace

import httpx
import pytest
from google.auth import exceptions as google_auth_exceptions

from schemgen.jobs.errors import GenerationFailed
from schemgen.services.generation import client as generation_client
from schemgen.services.generation.client import DirectGenerationClient, IdTokenGenerationClient
from schemgen.services.generation.factory import build_generation_client

ENDPOINT = "https://generator.example.run.app/generate"


async def _collect(client: DirectGenerationClient, prompt: str) -> bytes:
  body = b""
  async with client.open_stream(prompt) as chunks:
    async for chunk in chunks:
      body += chunk
  return body


@pytest.mark.anyio
async def test_prompt_is_sent_as_query_parameter() -> None:
  seen: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append(request)
    return httpx.Response(200, content=b"\x0a\x00schematic")

  client = DirectGenerationClient(ENDPOINT, transport=httpx.MockTransport(handler))
  body = await _collect(client, "a tower & a moat?")

  assert body == b"\x0a\x00schematic"
  assert seen[0].method == "POST"
  assert seen[0].url.params["prompt"] == "a tower & a moat?"
  assert "authorization" not in seen[0].headers


@pytest.mark.anyio
@pytest.mark.parametrize("status_code", [500, 504])
async def test_error_status_maps_to_generation_failed(status_code: int) -> None:
  transport = httpx.MockTransport(lambda request: httpx.Response(status_code, content=b"build script incomplete" * 50))
  client = DirectGenerationClient(ENDPOINT, transport=transport)

  with pytest.raises(GenerationFailed) as exc_info:
    await _collect(client, "a tower")

  message = str(exc_info.value)
  assert str(status_code) in message
  assert len(message) < 300
  assert exc_info.value.reason == "generation_failed"


@pytest.mark.anyio
async def test_connect_error_maps_to_generation_failed() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)

  with pytest.raises(GenerationFailed):
    await _collect(DirectGenerationClient(ENDPOINT, transport=httpx.MockTransport(handler)), "a tower")


@pytest.mark.anyio
async def test_read_timeout_maps_to_timeout_reason() -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("slow", request=request)

  with pytest.raises(GenerationFailed) as exc_info:
    await _collect(DirectGenerationClient(ENDPOINT, transport=httpx.MockTransport(handler)), "a tower")
  assert exc_info.value.reason == "timeout"


@pytest.mark.anyio
async def test_id_token_client_sends_bearer(monkeypatch: pytest.MonkeyPatch) -> None:
  audiences: list[str] = []

  def fake_fetch(_request, audience: str) -> str:
    audiences.append(audience)
    return "signed-token"

  monkeypatch.setattr(generation_client.google.oauth2.id_token, "fetch_id_token", fake_fetch)
  seen: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append(request)
    return httpx.Response(200, content=b"data")

  client = IdTokenGenerationClient(ENDPOINT, transport=httpx.MockTransport(handler))
  assert await _collect(client, "a tower") == b"data"
  assert audiences == ["https://generator.example.run.app"]
  assert seen[0].headers["authorization"] == "Bearer signed-token"


@pytest.mark.anyio
async def test_id_token_failure_maps_to_generation_failed(monkeypatch: pytest.MonkeyPatch) -> None:
  def fake_fetch(_request, _audience: str) -> str:
    raise google_auth_exceptions.DefaultCredentialsError("no credentials")

  monkeypatch.setattr(generation_client.google.oauth2.id_token, "fetch_id_token", fake_fetch)
  transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"data"))

  with pytest.raises(GenerationFailed):
    await _collect(IdTokenGenerationClient(ENDPOINT, transport=transport), "a tower")


def test_factory_selects_strategy(settings) -> None:
  assert type(build_generation_client(replace(settings, generation_auth="none"))) is DirectGenerationClient
  assert isinstance(build_generation_client(replace(settings, generation_auth="id-token")), IdTokenGenerationClient)
