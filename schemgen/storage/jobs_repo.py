"""Storage interfaces for generation jobs."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Protocol

from schemgen.jobs.errors import InvalidTransition
from schemgen.jobs.models import JobError, JobRecord, JobStatus, can_transition, is_terminal


class JobsRepository(Protocol):
  """Repository contract for job persistence."""

  async def create_job(self, record: JobRecord) -> None:
    """Persist an initial job record, raising AlreadyExists on id collision."""

  async def get_job(self, job_id: str) -> JobRecord | None:
    """Fetch a job by identifier."""

  async def update_status(self, job_id: str, status: JobStatus, *, error: JobError | None = None, artifact: str | None = None) -> JobRecord:
    """Atomically apply a transition-checked status update."""

  async def find_stale_waiting(self, *, created_before: str, limit: int = 100) -> list[JobRecord]:
    """Return jobs still waiting that were created before the given stamp."""


def apply_status_update(record: JobRecord, status: JobStatus, *, now: str, error: JobError | None = None, artifact: str | None = None) -> JobRecord:
  """Return the record after a status update, enforcing the job state machine."""
  # Reject regressions and anything leaving a terminal state before touching fields.
  if not can_transition(record.status, status):
    raise InvalidTransition(record.job_id, record.status, status)

  changes: dict[str, Any] = {"status": status, "updated_at": now}
  if status == "started":
    changes["started_at"] = now
  if is_terminal(status):
    changes["completed_at"] = now
  if status == "failed":
    changes["error"] = error
  if status == "finished":
    changes["artifact"] = artifact
  return replace(record, **changes)


def status_fields(record: JobRecord) -> dict[str, Any]:
  """Return the partial document written by a status update."""
  document = record.to_document()
  fields = {"status": document["status"], "updated_at": document["updated_at"]}
  if record.status == "started":
    fields["started_at"] = document["started_at"]
  if is_terminal(record.status):
    fields["completed_at"] = document["completed_at"]
  if record.status == "failed":
    fields["error"] = document["error"]
  if record.status == "finished":
    fields["artifact"] = document["artifact"]
  return fields
