"""Worker handler driving one delivered work item to a terminal job state."""

from __future__ import annotations

import asyncio
import logging

from schemgen.core.context import PipelineContext
from schemgen.jobs.errors import FailureNotRecorded, GenerationFailed, InvalidTransition, JobNotFound, PipelineError
from schemgen.jobs.models import JobError, JobRecord, WorkItem, is_terminal
from schemgen.jobs.pipe import PipeResult, pipe_stream
from schemgen.services.artifacts.sink import artifact_key

logger = logging.getLogger(__name__)

# Persisted failure messages are for humans polling the job; keep them bounded.
_MAX_ERROR_MESSAGE_CHARS = 500


async def process_work_item(item: WorkItem, context: PipelineContext) -> JobRecord | None:
  """Run generation for one work item.

  Returns the settled job record, or None when the delivery was acknowledged
  without work (unknown job, or a redelivery of an already settled job).
  Generation and sink failures are recorded as ``failed`` before being re-raised;
  when that write does not land, FailureNotRecorded is raised instead.
  """
  repo = context.jobs_repo

  # Step 1: mark started. Storage hiccups are tolerated; a settled job means this is a redelivery.
  marked_started = False
  try:
    await repo.update_status(item.job_id, "started")
    marked_started = True
  except InvalidTransition as exc:
    logger.info("Job %s is already %s; acknowledging redelivered work item.", item.job_id, exc.current)
    return None
  except JobNotFound:
    logger.error("Job %s not found; dropping work item.", item.job_id)
    return None
  except Exception as exc:  # noqa: BLE001
    logger.warning("Could not mark job %s started, continuing: %s", item.job_id, exc, exc_info=True)

  # Steps 2-4: generate and stream into the sink under one deadline.
  result = await _run_pipeline(item, context)

  # Step 5: only a committed write may mark the job finished.
  if result.ok:
    # finished is only reachable from started, so retry the skipped transition first.
    if not marked_started:
      await _retry_mark_started(item.job_id, context)
    try:
      record = await repo.update_status(item.job_id, "finished", artifact=result.location)
    except InvalidTransition as exc:
      logger.warning("Job %s settled as %s by a concurrent delivery; artifact overwritten.", item.job_id, exc.current)
      return await repo.get_job(item.job_id)
    logger.info("Job %s finished bytes=%d location=%s", item.job_id, result.bytes_written, result.location)
    return record

  # Step 6: exactly one failed write, then surface the cause.
  cause = result.cause
  settled = await _record_failure(item.job_id, cause, context)
  if settled is None or not is_terminal(settled.status):
    # The job is still open; the queue has to redeliver so it can settle.
    raise FailureNotRecorded(item.job_id, cause) from cause
  raise cause


async def _retry_mark_started(job_id: str, context: PipelineContext) -> None:
  try:
    await context.jobs_repo.update_status(job_id, "started")
  except InvalidTransition:
    # Settled concurrently; the finished write reports it.
    pass
  except Exception as exc:  # noqa: BLE001
    logger.warning("Retry marking job %s started failed: %s", job_id, exc)


async def _run_pipeline(item: WorkItem, context: PipelineContext) -> PipeResult:
  settings = context.settings
  try:
    return await asyncio.wait_for(_generate_artifact(item, context), timeout=settings.pipe_timeout_seconds)
  except asyncio.TimeoutError:
    return PipeResult(cause=GenerationFailed(f"Generation did not complete within {settings.pipe_timeout_seconds:g}s.", reason="timeout"))
  except PipelineError as exc:
    return PipeResult(cause=exc)
  except Exception as exc:  # noqa: BLE001
    logger.error("Unexpected error while generating job %s", item.job_id, exc_info=True)
    wrapped = PipelineError(f"Unexpected error: {type(exc).__name__}: {exc}")
    wrapped.__cause__ = exc
    return PipeResult(cause=wrapped)


async def _generate_artifact(item: WorkItem, context: PipelineContext) -> PipeResult:
  key = artifact_key(item.job_id, context.settings.artifact_extension)
  async with context.generation_client.open_stream(item.prompt) as chunks:
    writer = await context.artifact_sink.open_writer(key)
    return await pipe_stream(chunks, writer)


async def _record_failure(job_id: str, cause: PipelineError, context: PipelineContext) -> JobRecord | None:
  """Write the failed status and return the stored record, or None when the store could not be reached."""
  reason = getattr(cause, "reason", "internal")
  error = JobError(reason=reason, message=str(cause)[:_MAX_ERROR_MESSAGE_CHARS])
  logger.error("Job %s failed reason=%s: %s", job_id, reason, cause)
  try:
    return await context.jobs_repo.update_status(job_id, "failed", error=error)
  except InvalidTransition as exc:
    logger.warning("Job %s already %s; failure of this delivery not recorded.", job_id, exc.current)
  except Exception as exc:  # noqa: BLE001
    logger.error("Could not record failure for job %s: %s", job_id, exc, exc_info=True)
    return None

  try:
    return await context.jobs_repo.get_job(job_id)
  except Exception as exc:  # noqa: BLE001
    logger.error("Could not read back job %s after a rejected failure write: %s", job_id, exc)
    return None
