from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from schemgen.api.deps import get_pipeline_context
from schemgen.api.models import ProcessJobResponse, WorkItemPayload
from schemgen.core.context import PipelineContext
from schemgen.core.security import require_task_secret
from schemgen.jobs.errors import FailureNotRecorded, PipelineError
from schemgen.jobs.models import is_terminal
from schemgen.jobs.worker import process_work_item

router = APIRouter(prefix="/tasks", tags=["tasks"], dependencies=[Depends(require_task_secret)])
logger = logging.getLogger(__name__)


@router.post("/process-job", status_code=status.HTTP_200_OK, response_model=ProcessJobResponse)
async def process_job_task(
  payload: WorkItemPayload,
  context: PipelineContext = Depends(get_pipeline_context),  # noqa: B008
) -> ProcessJobResponse:
  """
  Handler for Cloud Tasks (and local simulation).
  Runs the job to a terminal state before answering; only settled jobs are acknowledged with 2xx.
  """
  item = payload.to_work_item()
  logger.info("Received work item for job %s", item.job_id)

  try:
    record = await process_work_item(item, context)
  except FailureNotRecorded:
    # Answered with 503 so the queue redelivers and the job gets another chance to settle.
    raise
  except PipelineError:
    logger.error("Work item for job %s failed", item.job_id, exc_info=True)
    # Report what the store holds; a concurrent delivery may have settled the job first.
    stored = await context.jobs_repo.get_job(item.job_id)
    if stored is None or not is_terminal(stored.status):
      raise
    return ProcessJobResponse(job_id=item.job_id, status=stored.status)

  if record is None:
    return ProcessJobResponse(job_id=item.job_id, status="skipped")
  return ProcessJobResponse(job_id=record.job_id, status=record.status)
