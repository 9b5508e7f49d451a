from __future__ import annotations

from schemgen.config import Settings
from schemgen.services.tasks.interface import TaskEnqueuer
from schemgen.services.tasks.local import LocalHttpEnqueuer


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer:
  """Factory to get the configured task enqueuer."""
  if settings.task_service_provider == "gcp":
    from schemgen.services.tasks.gcp import CloudTasksEnqueuer

    return CloudTasksEnqueuer(settings)
  return LocalHttpEnqueuer(settings)
