from fastapi import Request

from schemgen.config import get_settings
from schemgen.core.context import PipelineContext, build_pipeline_context


def get_pipeline_context(request: Request) -> PipelineContext:
  """Return the process-wide pipeline context, building it if lifespan did not run."""
  context = getattr(request.app.state, "pipeline_context", None)
  if context is None:
    context = build_pipeline_context(get_settings())
    request.app.state.pipeline_context = context
  return context
