"""Process-wide collaborators shared by the intake and worker handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from schemgen.config import Settings
from schemgen.services.artifacts.factory import build_artifact_sink
from schemgen.services.artifacts.sink import ArtifactSink
from schemgen.services.generation.client import GenerationClient
from schemgen.services.generation.factory import build_generation_client
from schemgen.services.tasks.factory import get_task_enqueuer
from schemgen.services.tasks.interface import TaskEnqueuer
from schemgen.storage.factory import _get_jobs_repo
from schemgen.storage.jobs_repo import JobsRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineContext:
  """Built once at startup and handed to every handler."""

  settings: Settings
  jobs_repo: JobsRepository
  enqueuer: TaskEnqueuer
  generation_client: GenerationClient
  artifact_sink: ArtifactSink


def build_pipeline_context(settings: Settings) -> PipelineContext:
  """Wire the configured store, queue, generator and sink."""
  context = PipelineContext(
    settings=settings,
    jobs_repo=_get_jobs_repo(settings),
    enqueuer=get_task_enqueuer(settings),
    generation_client=build_generation_client(settings),
    artifact_sink=build_artifact_sink(settings),
  )
  logger.info(
    "Pipeline context ready job_store=%s task_provider=%s generation_auth=%s artifact_backend=%s",
    settings.job_store_backend,
    settings.task_service_provider,
    settings.generation_auth,
    settings.artifact_backend,
  )
  return context
