"""Artifact sink contracts shared by the storage backends."""

from __future__ import annotations

from typing import Protocol


class ArtifactWriter(Protocol):
  """A single streamed write; nothing is readable until commit succeeds."""

  async def write(self, chunk: bytes) -> None:
    """Append bytes, raising SinkFailed on I/O errors."""

  async def commit(self) -> str:
    """Durably publish the bytes under the key and return their location."""

  async def abort(self) -> None:
    """Discard staged bytes, leaving any previously committed artifact untouched."""


class ArtifactSink(Protocol):
  """Durable blob store keyed by artifact name."""

  async def open_writer(self, key: str) -> ArtifactWriter:
    """Open a writer that overwrites key on commit."""

  async def exists(self, key: str) -> bool:
    """Return True when a committed artifact exists under key."""

  async def read(self, key: str) -> bytes:
    """Return the committed artifact bytes."""


def artifact_key(job_id: str, extension: str) -> str:
  """Return the object name an artifact is stored under."""
  return f"{job_id}.{extension}"
