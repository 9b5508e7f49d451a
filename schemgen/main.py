from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from schemgen import __version__
from schemgen.api.routes import generate, jobs, maintenance, tasks
from schemgen.config import get_settings
from schemgen.core.exceptions import global_exception_handler, http_exception_handler, pipeline_exception_handler, request_validation_exception_handler
from schemgen.core.lifespan import lifespan
from schemgen.core.middleware import RequestLoggingMiddleware
from schemgen.jobs.errors import PipelineError

settings = get_settings()

app = FastAPI(title="schemgen", version=__version__, lifespan=lifespan, docs_url=None, redoc_url=None)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(PipelineError, pipeline_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(generate.router, prefix="/v1/generate", tags=["generate"])
app.include_router(jobs.router, prefix="/v1/jobs", tags=["jobs"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
app.include_router(maintenance.router, prefix="/internal", tags=["maintenance"])
