"""Streaming copy from the generation response into an artifact writer."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

from schemgen.jobs.errors import GenerationFailed, PipelineError, SinkFailed
from schemgen.services.artifacts.sink import ArtifactWriter


@dataclass(frozen=True)
class PipeResult:
  """Outcome of one pipe: a committed location, or the cause of failure."""

  location: str | None = None
  bytes_written: int = 0
  cause: PipelineError | None = None

  @property
  def ok(self) -> bool:
    return self.cause is None


async def pipe_stream(chunks: AsyncIterator[bytes], writer: ArtifactWriter) -> PipeResult:
  """Copy chunks into writer and commit; the writer is aborted on every non-commit exit."""
  written = 0
  committed = False
  try:
    async for chunk in chunks:
      await writer.write(chunk)
      written += len(chunk)
    # An empty 2xx body is a generator fault; empty artifacts are never committed.
    if written == 0:
      raise GenerationFailed("Generation service returned an empty artifact.")
    location = await writer.commit()
    committed = True
    return PipeResult(location=location, bytes_written=written)
  except (GenerationFailed, SinkFailed) as exc:
    return PipeResult(bytes_written=written, cause=exc)
  finally:
    # Also runs on cancellation, e.g. when the pipe deadline expires.
    if not committed:
      await writer.abort()
