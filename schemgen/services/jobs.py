import logging
import time
from collections.abc import Mapping
from typing import Any

from schemgen.api.models import JobCreateResponse, JobErrorPayload, JobStatusResponse, OrphanedJob, OrphanedJobsResponse
from schemgen.config import Settings
from schemgen.core.context import PipelineContext
from schemgen.jobs.errors import AlreadyExists, EnqueueFailed, InvalidArgument, JobNotFound
from schemgen.jobs.models import JobRecord, WorkItem
from schemgen.utils.ids import generate_job_id
from schemgen.utils.timestamps import DATE_FORMAT, parse_utc, utc_now

logger = logging.getLogger(__name__)

# Id collisions are astronomically rare; a few fresh draws cover them.
_MAX_ID_ATTEMPTS = 3


def _validate_prompt(payload: Any, settings: Settings) -> str:
  """Return the prompt or raise InvalidArgument; runs before any state is created."""
  if not isinstance(payload, Mapping):
    raise InvalidArgument("Request body must be a JSON object.")

  prompt = payload.get("prompt")
  if prompt is None:
    raise InvalidArgument("The 'prompt' field is required.")

  if not isinstance(prompt, str):
    raise InvalidArgument("The 'prompt' field must be a string.")

  # Empty and whitespace-only prompts are valid; only an operator-configured cap applies.
  if settings.max_prompt_chars is not None and len(prompt) > settings.max_prompt_chars:
    raise InvalidArgument(f"The 'prompt' field must be at most {settings.max_prompt_chars} characters.")

  return prompt


async def _create_waiting_job(prompt: str, context: PipelineContext) -> JobRecord:
  """Persist a waiting job under a fresh id, redrawing on collision."""
  last_error: AlreadyExists | None = None
  for _ in range(_MAX_ID_ATTEMPTS):
    timestamp = utc_now()
    record = JobRecord(job_id=generate_job_id(), prompt=prompt, status="waiting", created_at=timestamp, updated_at=timestamp)
    try:
      await context.jobs_repo.create_job(record)
      return record
    except AlreadyExists as exc:
      logger.warning("Job id collision on %s, drawing a new id.", exc.job_id)
      last_error = exc
  raise last_error


async def submit_generation(payload: Any, context: PipelineContext) -> JobCreateResponse:
  """Validate a generation request, record the job, and hand it to the work queue."""
  prompt = _validate_prompt(payload, context.settings)

  # The record must exist before the work item does, so a worker never sees an unknown job.
  record = await _create_waiting_job(prompt, context)

  try:
    await context.enqueuer.enqueue(WorkItem(prompt=prompt, job_id=record.job_id))
  except EnqueueFailed:
    logger.warning("Job %s left waiting without a work item (orphaned): enqueue failed.", record.job_id, exc_info=True)
    raise

  logger.info("Accepted generation job %s", record.job_id)
  return JobCreateResponse(job_id=record.job_id)


def _job_status_from_record(record: JobRecord) -> JobStatusResponse:
  """Convert a persisted job record into an API response payload."""
  error = JobErrorPayload(reason=record.error.reason, message=record.error.message) if record.error else None
  return JobStatusResponse(job_id=record.job_id, status=record.status, prompt=record.prompt, error=error, artifact=record.artifact)


async def get_job_status(job_id: str, context: PipelineContext) -> JobStatusResponse:
  """Fetch the status of a job for polling callers."""
  record = await context.jobs_repo.get_job(job_id)
  if record is None:
    raise JobNotFound(job_id)
  return _job_status_from_record(record)


async def find_orphaned_jobs(context: PipelineContext, *, older_than_seconds: int | None = None, limit: int = 100) -> OrphanedJobsResponse:
  """List jobs stuck in waiting past the horizon, for external reconciliation."""
  horizon = older_than_seconds or context.settings.orphan_horizon_seconds
  now = time.time()
  created_before = time.strftime(DATE_FORMAT, time.gmtime(now - horizon))
  stale = await context.jobs_repo.find_stale_waiting(created_before=created_before, limit=limit)

  orphans: list[OrphanedJob] = []
  for record in stale:
    if not record.created_at:
      # Without a creation stamp the age is unknown; name the job so an operator can look at it.
      logger.warning("Waiting job %s has no created_at; left out of the orphan report.", record.job_id)
      continue
    waiting_seconds = int(now - parse_utc(record.created_at).timestamp())
    orphans.append(OrphanedJob(job_id=record.job_id, created_at=record.created_at, waiting_seconds=waiting_seconds))

  if orphans:
    logger.warning("Found %d job(s) waiting longer than %ss; oldest is %s.", len(orphans), horizon, orphans[0].job_id)
  return OrphanedJobsResponse(horizon_seconds=horizon, jobs=orphans)
