"""Request and response payloads for the HTTP surface."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from schemgen.jobs.models import JobStatus, WorkItem


class _CamelModel(BaseModel):
  """Accept snake_case in code while exposing camelCase keys on the wire."""

  model_config = ConfigDict(populate_by_name=True)


class JobCreateResponse(_CamelModel):
  job_id: str = Field(alias="jobId")


class JobErrorPayload(BaseModel):
  reason: str
  message: str


class JobStatusResponse(_CamelModel):
  job_id: str = Field(alias="jobId")
  status: JobStatus
  prompt: str
  error: JobErrorPayload | None = None
  artifact: str | None = None


class WorkItemPayload(_CamelModel):
  """Body delivered by the work queue to the worker endpoint."""

  prompt: StrictStr
  job_id: StrictStr = Field(alias="jobId", min_length=1)

  def to_work_item(self) -> WorkItem:
    return WorkItem(prompt=self.prompt, job_id=self.job_id)


class ProcessJobResponse(_CamelModel):
  job_id: str = Field(alias="jobId")
  status: Literal["finished", "failed", "skipped"]


class OrphanedJob(_CamelModel):
  """A job still waiting past the monitoring horizon, likely never enqueued."""

  job_id: str = Field(alias="jobId")
  created_at: str = Field(alias="createdAt")
  waiting_seconds: int = Field(alias="waitingSeconds")


class OrphanedJobsResponse(_CamelModel):
  horizon_seconds: int = Field(alias="horizonSeconds")
  jobs: list[OrphanedJob]
