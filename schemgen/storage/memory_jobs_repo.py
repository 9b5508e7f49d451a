"""In-process jobs repository for local development and tests."""

from __future__ import annotations

import asyncio
from dataclasses import replace

from schemgen.jobs.errors import AlreadyExists, JobNotFound
from schemgen.jobs.models import JobError, JobRecord, JobStatus
from schemgen.storage.jobs_repo import apply_status_update
from schemgen.utils.timestamps import utc_now


class InMemoryJobsRepository:
  """Dictionary-backed repository guarded by a single asyncio lock."""

  def __init__(self) -> None:
    self._jobs: dict[str, JobRecord] = {}
    self._lock = asyncio.Lock()

  async def create_job(self, record: JobRecord) -> None:
    async with self._lock:
      if record.job_id in self._jobs:
        raise AlreadyExists(record.job_id)
      self._jobs[record.job_id] = replace(record)

  async def get_job(self, job_id: str) -> JobRecord | None:
    async with self._lock:
      record = self._jobs.get(job_id)
      return replace(record) if record is not None else None

  async def update_status(self, job_id: str, status: JobStatus, *, error: JobError | None = None, artifact: str | None = None) -> JobRecord:
    async with self._lock:
      record = self._jobs.get(job_id)
      if record is None:
        raise JobNotFound(job_id)
      updated = apply_status_update(record, status, now=utc_now(), error=error, artifact=artifact)
      self._jobs[job_id] = updated
      return replace(updated)

  async def find_stale_waiting(self, *, created_before: str, limit: int = 100) -> list[JobRecord]:
    async with self._lock:
      # Stamps share one fixed-width UTC format, so string order matches time order.
      stale = [replace(record) for record in self._jobs.values() if record.status == "waiting" and record.created_at < created_before]
    stale.sort(key=lambda record: record.created_at)
    return stale[:limit]
