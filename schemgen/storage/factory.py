from schemgen.config import Settings
from schemgen.storage.jobs_repo import JobsRepository
from schemgen.storage.memory_jobs_repo import InMemoryJobsRepository


def _get_jobs_repo(settings: Settings) -> JobsRepository:
  """Return the configured jobs repository."""

  # Keep the in-memory store for local runs that have no Firebase project.
  if settings.job_store_backend == "memory":
    return InMemoryJobsRepository()

  from schemgen.core.firebase import get_firestore_client
  from schemgen.storage.firestore_jobs_repo import FirestoreJobsRepository

  return FirestoreJobsRepository(get_firestore_client(settings), collection=settings.jobs_collection)
