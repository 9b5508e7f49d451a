from fastapi import APIRouter, Depends

from schemgen.api.deps import get_pipeline_context
from schemgen.api.models import JobStatusResponse
from schemgen.core.context import PipelineContext
from schemgen.services import jobs as job_service

router = APIRouter()


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
  job_id: str,
  context: PipelineContext = Depends(get_pipeline_context),  # noqa: B008
) -> JobStatusResponse:
  """Fetch the status of a generation job."""
  return await job_service.get_job_status(job_id, context)
