from __future__ import annotations

import json
import logging
from typing import Any

from google.api_core import exceptions as gcp_exceptions
from google.cloud import tasks_v2
from starlette.concurrency import run_in_threadpool

from schemgen.config import Settings
from schemgen.jobs.errors import EnqueueFailed
from schemgen.jobs.models import WorkItem
from schemgen.services.tasks.interface import PROCESS_JOB_PATH, TASK_SECRET_HEADER

logger = logging.getLogger(__name__)

# Cloud Tasks caps HTTP dispatch deadlines at 30 minutes.
_MAX_DISPATCH_DEADLINE_SECONDS = 1800


class CloudTasksEnqueuer:
  """Enqueues work items to Google Cloud Tasks as HTTP tasks."""

  def __init__(self, settings: Settings, client: tasks_v2.CloudTasksClient | None = None) -> None:
    self.settings = settings
    self.client = client or tasks_v2.CloudTasksClient()

  def build_task(self, item: WorkItem) -> dict[str, Any]:
    """Build the HTTP task that delivers one work item to the worker endpoint."""
    if not self.settings.base_url:
      raise EnqueueFailed("SCHEMGEN_BASE_URL must be set to dispatch Cloud Tasks.")

    url = f"{self.settings.base_url.rstrip('/')}{PROCESS_JOB_PATH}"
    headers = {"Content-Type": "application/json"}
    # Cloud Run invoker auth owns the Authorization header, so the shared secret uses its own header.
    if self.settings.task_secret:
      headers[TASK_SECRET_HEADER] = self.settings.task_secret

    http_request: dict[str, Any] = {
      "http_method": tasks_v2.HttpMethod.POST,
      "url": url,
      "headers": headers,
      "body": json.dumps(item.to_payload()).encode(),
    }
    if self.settings.cloud_run_invoker_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_run_invoker_service_account, "audience": self.settings.base_url.rstrip("/")}

    # Give the worker enough time to drain the generation stream before Cloud Tasks gives up.
    deadline = int(min(_MAX_DISPATCH_DEADLINE_SECONDS, self.settings.pipe_timeout_seconds + 60))
    return {"http_request": http_request, "dispatch_deadline": {"seconds": deadline}}

  async def enqueue(self, item: WorkItem) -> None:
    """Enqueue a work item to Cloud Tasks."""
    task = self.build_task(item)
    parent = self.settings.cloud_tasks_queue_path

    try:
      response = await run_in_threadpool(self.client.create_task, request={"parent": parent, "task": task})
    except gcp_exceptions.GoogleAPICallError as e:
      logger.error("Failed to enqueue task for job %s: %s", item.job_id, e, exc_info=True)
      raise EnqueueFailed(f"Cloud Tasks rejected job {item.job_id}: {e}") from e

    logger.info("Enqueued task %s for job %s", response.name, item.job_id)
