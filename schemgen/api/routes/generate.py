import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from schemgen.api.deps import get_pipeline_context
from schemgen.api.models import JobCreateResponse
from schemgen.core.context import PipelineContext
from schemgen.services import jobs as job_service

router = APIRouter()
logger = logging.getLogger("schemgen.api.routes.generate")


@router.post("", response_model=JobCreateResponse)
async def generate(
  payload: Annotated[Any, Body()] = None,
  context: PipelineContext = Depends(get_pipeline_context),  # noqa: B008
) -> JobCreateResponse:
  """Accept a prompt and return the id of the job that will generate it."""
  # The body is validated by the intake service so malformed prompts map to InvalidArgument, not 422.
  return await job_service.submit_generation(payload, context)
