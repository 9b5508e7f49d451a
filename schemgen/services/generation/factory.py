from __future__ import annotations

from schemgen.config import Settings
from schemgen.services.generation.client import DirectGenerationClient, GenerationClient, IdTokenGenerationClient


def build_generation_client(settings: Settings) -> GenerationClient:
  """Pick the authentication strategy once, at startup."""
  if settings.emulated:
    return DirectGenerationClient(settings.generation_endpoint_url, timeout_seconds=settings.generation_timeout_seconds)
  return IdTokenGenerationClient(settings.generation_endpoint_url, timeout_seconds=settings.generation_timeout_seconds)
