"""Firestore-backed jobs repository."""

from __future__ import annotations

import logging

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore import Client as FirestoreClient
from google.cloud.firestore_v1.base_query import FieldFilter
from starlette.concurrency import run_in_threadpool

from schemgen.jobs.errors import AlreadyExists, JobNotFound
from schemgen.jobs.models import JobError, JobRecord, JobStatus
from schemgen.storage.jobs_repo import apply_status_update, status_fields
from schemgen.utils.timestamps import utc_now

logger = logging.getLogger(__name__)


class FirestoreJobsRepository:
  """Stores one document per job in a Firestore collection keyed by job id."""

  def __init__(self, client: FirestoreClient, collection: str = "jobs") -> None:
    self._client = client
    self._collection = client.collection(collection)

  async def create_job(self, record: JobRecord) -> None:
    """Create the job document; Firestore rejects the write when the id is taken."""
    doc_ref = self._collection.document(record.job_id)
    try:
      await run_in_threadpool(doc_ref.create, record.to_document())
    except gcp_exceptions.Conflict as exc:
      raise AlreadyExists(record.job_id) from exc

  async def get_job(self, job_id: str) -> JobRecord | None:
    snapshot = await run_in_threadpool(self._collection.document(job_id).get)
    if not snapshot.exists:
      return None
    return JobRecord.from_document(job_id, snapshot.to_dict() or {})

  async def update_status(self, job_id: str, status: JobStatus, *, error: JobError | None = None, artifact: str | None = None) -> JobRecord:
    """Read-check-write inside a transaction so concurrent deliveries cannot both settle the job."""
    doc_ref = self._collection.document(job_id)

    def _run() -> JobRecord:
      transaction = self._client.transaction()
      return _update_in_transaction(transaction, doc_ref, job_id, status, error, artifact)

    return await run_in_threadpool(_run)

  async def find_stale_waiting(self, *, created_before: str, limit: int = 100) -> list[JobRecord]:
    # Needs the composite index (status ASC, created_at ASC) on the jobs collection.
    query = (
      self._collection.where(filter=FieldFilter("status", "==", "waiting"))
      .where(filter=FieldFilter("created_at", "<", created_before))
      .order_by("created_at")
      .limit(limit)
    )

    def _collect() -> list[JobRecord]:
      return [JobRecord.from_document(snapshot.id, snapshot.to_dict() or {}) for snapshot in query.stream()]

    return await run_in_threadpool(_collect)


@firestore.transactional
def _update_in_transaction(transaction: firestore.Transaction, doc_ref: firestore.DocumentReference, job_id: str, status: JobStatus, error: JobError | None, artifact: str | None) -> JobRecord:
  snapshot = doc_ref.get(transaction=transaction)
  if not snapshot.exists:
    raise JobNotFound(job_id)
  current = JobRecord.from_document(job_id, snapshot.to_dict() or {})
  updated = apply_status_update(current, status, now=utc_now(), error=error, artifact=artifact)
  transaction.update(doc_ref, status_fields(updated))
  logger.debug("Job %s moved %s -> %s", job_id, current.status, updated.status)
  return updated
