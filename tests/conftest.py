"""Shared fixtures and test doubles for the pipeline tests."""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

# Keep the suite independent from any developer .env values.
os.environ.setdefault("SCHEMGEN_ENV", "test")
os.environ.setdefault("SCHEMGEN_JOB_STORE", "memory")
os.environ.setdefault("SCHEMGEN_ARTIFACT_BACKEND", "filesystem")
os.environ.setdefault("SCHEMGEN_TASK_SERVICE_PROVIDER", "local-http")
os.environ.setdefault("SCHEMGEN_BASE_URL", "http://localhost:8000")
os.environ.setdefault("SCHEMGEN_TASK_SECRET", "test-task-secret")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from schemgen.api.deps import get_pipeline_context  # noqa: E402
from schemgen.config import Settings, get_settings  # noqa: E402
from schemgen.core.context import PipelineContext  # noqa: E402
from schemgen.jobs.errors import EnqueueFailed, SinkFailed  # noqa: E402
from schemgen.jobs.models import JobError, JobRecord, JobStatus, WorkItem  # noqa: E402
from schemgen.main import app  # noqa: E402
from schemgen.services.artifacts.filesystem import FilesystemArtifactSink  # noqa: E402
from schemgen.storage.memory_jobs_repo import InMemoryJobsRepository  # noqa: E402

TASK_SECRET = "test-task-secret"


class RecordingEnqueuer:
  """Work queue double that keeps published items in memory."""

  def __init__(self, *, fail: bool = False) -> None:
    self.items: list[WorkItem] = []
    self.fail = fail

  async def enqueue(self, item: WorkItem) -> None:
    if self.fail:
      raise EnqueueFailed("queue unavailable")
    self.items.append(item)


class FakeGenerationClient:
  """Generation double yielding canned chunks, optionally failing on open or mid-stream."""

  def __init__(self, chunks: Iterable[bytes] = (b"schem-", b"bytes"), *, open_error: Exception | None = None, stream_error: Exception | None = None, delay: float = 0.0) -> None:
    self.chunks = list(chunks)
    self.open_error = open_error
    self.stream_error = stream_error
    self.delay = delay
    self.prompts: list[str] = []

  @asynccontextmanager
  async def open_stream(self, prompt: str) -> AsyncIterator[AsyncIterator[bytes]]:
    self.prompts.append(prompt)
    if self.open_error is not None:
      raise self.open_error
    yield self._iterate()

  async def _iterate(self) -> AsyncIterator[bytes]:
    for chunk in self.chunks:
      if self.delay:
        await asyncio.sleep(self.delay)
      yield chunk
    if self.stream_error is not None:
      raise self.stream_error


class FailingWriter:
  """Wraps a real writer and fails once more than fail_after bytes were written."""

  def __init__(self, inner, fail_after: int) -> None:
    self._inner = inner
    self._fail_after = fail_after
    self._written = 0

  async def write(self, chunk: bytes) -> None:
    self._written += len(chunk)
    if self._written > self._fail_after:
      raise SinkFailed("disk full")
    await self._inner.write(chunk)

  async def commit(self) -> str:
    return await self._inner.commit()

  async def abort(self) -> None:
    await self._inner.abort()


class FailingSink(FilesystemArtifactSink):
  """Filesystem sink whose writers error mid-stream."""

  def __init__(self, root: Path, fail_after: int = 0) -> None:
    super().__init__(root)
    self.fail_after = fail_after

  async def open_writer(self, key: str) -> FailingWriter:
    return FailingWriter(await super().open_writer(key), self.fail_after)


class RecordingJobsRepository(InMemoryJobsRepository):
  """In-memory store that remembers every accepted status write per job."""

  def __init__(self) -> None:
    super().__init__()
    self.history: dict[str, list[str]] = {}

  async def update_status(self, job_id: str, status: JobStatus, *, error: JobError | None = None, artifact: str | None = None) -> JobRecord:
    record = await super().update_status(job_id, status, error=error, artifact=artifact)
    self.history.setdefault(job_id, []).append(status)
    return record


class FlakyJobsRepository(RecordingJobsRepository):
  """Raises a storage error the first time each listed status is written."""

  def __init__(self, *fail_once: str) -> None:
    super().__init__()
    self._fail_once = set(fail_once)

  async def update_status(self, job_id, status, **kwargs):
    if status in self._fail_once:
      self._fail_once.discard(status)
      raise RuntimeError(f"store unavailable writing {status}")
    return await super().update_status(job_id, status, **kwargs)


class RacingJobsRepository(RecordingJobsRepository):
  """Lets another delivery settle the job as finished just before a failed write lands."""

  async def update_status(self, job_id, status, **kwargs):
    if status == "failed":
      await super().update_status(job_id, "finished", artifact=f"{job_id}.schem")
    return await super().update_status(job_id, status, **kwargs)


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
  return replace(
    get_settings(),
    task_secret=TASK_SECRET,
    base_url="http://localhost:8000",
    artifact_dir=str(tmp_path / "artifacts"),
    pipe_timeout_seconds=5.0,
  )


@pytest.fixture
def jobs_repo() -> RecordingJobsRepository:
  return RecordingJobsRepository()


@pytest.fixture
def enqueuer() -> RecordingEnqueuer:
  return RecordingEnqueuer()


@pytest.fixture
def generation_client() -> FakeGenerationClient:
  return FakeGenerationClient()


@pytest.fixture
def artifact_sink(settings: Settings) -> FilesystemArtifactSink:
  return FilesystemArtifactSink(settings.artifact_dir)


@pytest.fixture
def context(settings, jobs_repo, enqueuer, generation_client, artifact_sink) -> PipelineContext:
  return PipelineContext(settings=settings, jobs_repo=jobs_repo, enqueuer=enqueuer, generation_client=generation_client, artifact_sink=artifact_sink)


@pytest.fixture
async def async_client(context: PipelineContext, settings: Settings):
  app.dependency_overrides[get_pipeline_context] = lambda: context
  app.dependency_overrides[get_settings] = lambda: settings
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()


async def seed_job(repo: InMemoryJobsRepository, job_id: str = "job-1", prompt: str = "a small stone tower", *, created_at: str = "2026-01-01T00:00:00Z") -> JobRecord:
  """Insert a waiting job the way intake would."""
  record = JobRecord(job_id=job_id, prompt=prompt, status="waiting", created_at=created_at, updated_at=created_at)
  await repo.create_job(record)
  return record
