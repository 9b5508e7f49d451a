"""Error taxonomy for the job pipeline."""

from __future__ import annotations


class PipelineError(Exception):
  """Base class for failures raised by the job pipeline."""

  code = "internal"


class InvalidArgument(PipelineError):
  """Raised when an intake request is malformed."""

  code = "invalid-argument"


class AlreadyExists(PipelineError):
  """Raised when a job id collides with an existing record."""

  code = "already-exists"

  def __init__(self, job_id: str) -> None:
    super().__init__(f"Job {job_id} already exists.")
    self.job_id = job_id


class JobNotFound(PipelineError):
  """Raised when a job record is missing."""

  code = "not-found"

  def __init__(self, job_id: str) -> None:
    super().__init__(f"Job {job_id} not found.")
    self.job_id = job_id


class InvalidTransition(PipelineError):
  """Raised when a status update would regress or leave a terminal state."""

  code = "failed-precondition"

  def __init__(self, job_id: str, current: str, target: str) -> None:
    super().__init__(f"Job {job_id} cannot move from {current} to {target}.")
    self.job_id = job_id
    self.current = current
    self.target = target


class EnqueueFailed(PipelineError):
  """Raised when a work item could not be handed to the work queue."""

  code = "unavailable"


class GenerationFailed(PipelineError):
  """Raised when the remote generation call or its stream fails."""

  code = "generation-failed"

  def __init__(self, message: str, *, reason: str = "generation_failed") -> None:
    super().__init__(message)
    self.reason = reason


class SinkFailed(PipelineError):
  """Raised when the artifact write fails."""

  code = "sink-failed"
  reason = "sink_failed"


class FailureNotRecorded(PipelineError):
  """Raised when a delivery failed and its failed status could not be stored.

  The job is left non-terminal, so the delivery must not be acknowledged.
  """

  code = "unavailable"

  def __init__(self, job_id: str, cause: PipelineError) -> None:
    super().__init__(f"Job {job_id} failed ({cause}) but the failure could not be recorded.")
    self.job_id = job_id
    self.reason = getattr(cause, "reason", "internal")
