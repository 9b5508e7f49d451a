from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from schemgen.api.deps import get_pipeline_context
from schemgen.api.models import OrphanedJobsResponse
from schemgen.core.context import PipelineContext
from schemgen.core.security import require_task_secret
from schemgen.services import jobs as job_service

router = APIRouter(prefix="/jobs", tags=["maintenance"], dependencies=[Depends(require_task_secret)])


@router.get("/orphaned", response_model=OrphanedJobsResponse)
async def list_orphaned_jobs(
  older_than_seconds: int | None = Query(default=None, gt=0),
  limit: int = Query(default=100, gt=0, le=1000),
  context: PipelineContext = Depends(get_pipeline_context),  # noqa: B008
) -> OrphanedJobsResponse:
  """List jobs still waiting past the horizon so an external reconciler can act on them."""
  return await job_service.find_orphaned_jobs(context, older_than_seconds=older_than_seconds, limit=limit)
