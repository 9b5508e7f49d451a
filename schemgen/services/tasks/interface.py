from __future__ import annotations

from typing import Protocol

from schemgen.jobs.models import WorkItem

# Worker endpoint every enqueuer targets, relative to the service base URL.
PROCESS_JOB_PATH = "/internal/tasks/process-job"
TASK_SECRET_HEADER = "x-schemgen-task-secret"


class TaskEnqueuer(Protocol):
  """Interface for handing work items to the asynchronous work queue."""

  async def enqueue(self, item: WorkItem) -> None:
    """Publish a work item, raising EnqueueFailed when the queue rejects it."""
    ...
