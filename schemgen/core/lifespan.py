import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from schemgen.config import get_settings
from schemgen.core.context import build_pipeline_context
from schemgen.core.logging import initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging and build the shared pipeline context once per process."""
  settings = get_settings()
  initialize_logging(settings)
  logger = logging.getLogger("schemgen.core.lifespan")

  context = build_pipeline_context(settings)
  app.state.pipeline_context = context

  # Emulator buckets are created on demand; production buckets are provisioned elsewhere.
  ensure_bucket = getattr(context.artifact_sink, "ensure_bucket", None)
  if ensure_bucket is not None:
    try:
      await ensure_bucket()
    except Exception as exc:  # noqa: BLE001
      logger.warning("Failed to ensure artifact bucket at startup: %s", exc)

  yield

  # Let local deliveries finish so their jobs reach a terminal state before shutdown.
  drain = getattr(context.enqueuer, "drain", None)
  if drain is not None:
    await drain()
  logger.info("Shutdown complete.")
