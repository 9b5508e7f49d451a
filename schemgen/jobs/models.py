"""Domain models for asynchronous schematic generation jobs."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

JobStatus = Literal["waiting", "started", "finished", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"finished", "failed"})

# Allowed targets per current status. started -> started is an idempotent overwrite for redeliveries.
_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
  "waiting": frozenset({"started", "failed"}),
  "started": frozenset({"started", "finished", "failed"}),
  "finished": frozenset(),
  "failed": frozenset(),
}


def can_transition(current: str, target: str) -> bool:
  """Return True when a job may move from current to target."""
  return target in _ALLOWED_TRANSITIONS.get(current, frozenset())


def is_terminal(status: str) -> bool:
  return status in TERMINAL_STATUSES


@dataclass
class JobError:
  """Failure reason persisted alongside a failed job."""

  reason: str
  message: str


@dataclass
class JobRecord:
  """Represents a schematic generation job."""

  job_id: str
  prompt: str
  status: JobStatus
  created_at: str
  updated_at: str
  started_at: str | None = None
  completed_at: str | None = None
  error: JobError | None = None
  artifact: str | None = None

  def to_document(self) -> dict[str, Any]:
    """Serialize into the stored document shape (the id is the document key)."""
    document = asdict(self)
    document.pop("job_id")
    return document

  @classmethod
  def from_document(cls, job_id: str, document: dict[str, Any]) -> JobRecord:
    raw_error = document.get("error")
    error = JobError(reason=str(raw_error.get("reason")), message=str(raw_error.get("message"))) if isinstance(raw_error, dict) else None
    return cls(
      job_id=job_id,
      prompt=document["prompt"],
      status=document["status"],
      created_at=document.get("created_at") or "",
      updated_at=document.get("updated_at") or "",
      started_at=document.get("started_at"),
      completed_at=document.get("completed_at"),
      error=error,
      artifact=document.get("artifact"),
    )


@dataclass(frozen=True)
class WorkItem:
  """Message handed from intake to the worker through the work queue."""

  prompt: str
  job_id: str

  def to_payload(self) -> dict[str, str]:
    return {"prompt": self.prompt, "jobId": self.job_id}
