from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlparse

import httpx

from schemgen.config import Settings
from schemgen.jobs.errors import EnqueueFailed
from schemgen.jobs.models import WorkItem
from schemgen.services.tasks.interface import PROCESS_JOB_PATH, TASK_SECRET_HEADER

logger = logging.getLogger(__name__)


class LocalHttpEnqueuer:
  """Enqueues work items via local HTTP requests to simulate Cloud Tasks."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings
    self._pending: set[asyncio.Task[None]] = set()

  def _should_use_asgi_transport(self, base_url: str) -> bool:
    """Decide if we should route requests in-process via ASGITransport."""
    # Avoid network/proxy edge-cases for local development by calling the app in-process when possible.
    parsed = urlparse(base_url)
    hostname = (parsed.hostname or "").lower()
    return hostname in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

  def _build_client(self, base_url: str) -> httpx.AsyncClient:
    """Build an httpx client for local task dispatch."""
    # Never trust environment proxy variables for internal task dispatch.
    if self._should_use_asgi_transport(base_url):
      from schemgen.main import app

      transport = httpx.ASGITransport(app=app)
      return httpx.AsyncClient(transport=transport, base_url=base_url, trust_env=False)
    return httpx.AsyncClient(trust_env=False)

  def _task_headers(self) -> dict[str, str]:
    """Build task authentication headers for internal endpoints."""
    if not self.settings.task_secret:
      raise EnqueueFailed("Task secret not configured.")
    return {TASK_SECRET_HEADER: self.settings.task_secret}

  async def enqueue(self, item: WorkItem) -> None:
    """Accept the item now and deliver it to the worker endpoint in the background."""
    if not self.settings.base_url:
      raise EnqueueFailed("Base URL not configured, strictly required for LocalHttpEnqueuer.")

    url = f"{self.settings.base_url.rstrip('/')}{PROCESS_JOB_PATH}"
    headers = self._task_headers()
    task = asyncio.create_task(self._deliver(url, item, headers))
    # Hold a reference until delivery completes so the task is not garbage collected.
    self._pending.add(task)
    task.add_done_callback(self._pending.discard)

  async def _deliver(self, url: str, item: WorkItem, headers: dict[str, str]) -> None:
    try:
      async with self._build_client(self.settings.base_url or url) as client:
        # The worker endpoint streams the whole artifact before answering, so allow the full pipe deadline.
        logger.info("Dispatching job %s locally to %s", item.job_id, url)
        response = await client.post(url, json=item.to_payload(), headers=headers, timeout=self.settings.pipe_timeout_seconds + 60)
        response.raise_for_status()

    except httpx.HTTPStatusError as e:
      logger.error("Local task dispatch returned %s for job %s: %s", e.response.status_code, item.job_id, e.response.text)
    except httpx.RequestError as e:
      logger.error("Failed to dispatch local task for job %s: %s", item.job_id, e)
    except Exception:
      # Nothing awaits this task; errors are only visible here.
      logger.exception("Unexpected error dispatching local task for job %s", item.job_id)

  async def drain(self) -> None:
    """Wait for in-flight local deliveries, used on shutdown and in tests."""
    if self._pending:
      await asyncio.gather(*list(self._pending), return_exceptions=True)
