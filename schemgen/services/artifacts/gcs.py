"""Google Cloud Storage artifact sink."""

from __future__ import annotations

import logging
import os
import tempfile
from typing import IO
from urllib.parse import urlparse, urlunparse

from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

from schemgen.config import Settings
from schemgen.jobs.errors import SinkFailed

logger = logging.getLogger(__name__)

ARTIFACT_CONTENT_TYPE = "application/octet-stream"
# Chunks are spooled in memory up to this size, then spill to a temporary file.
_SPOOL_MAX_BYTES = 8 * 1024 * 1024


class GcsArtifactWriter:
  """Stages streamed bytes and uploads them as one object on commit.

  The object only appears in the bucket once the upload finalizes, so an
  aborted or failed write never replaces a previously committed artifact.
  """

  def __init__(self, blob: storage.Blob, location: str) -> None:
    self._blob = blob
    self._location = location
    self._spool: IO[bytes] = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_BYTES)
    self._closed = False

  async def write(self, chunk: bytes) -> None:
    try:
      await run_in_threadpool(self._spool.write, chunk)
    except OSError as exc:
      raise SinkFailed(f"Failed staging {self._location}: {exc}") from exc

  async def commit(self) -> str:
    try:
      await run_in_threadpool(self._blob.upload_from_file, self._spool, rewind=True, content_type=ARTIFACT_CONTENT_TYPE)
    except Exception as exc:  # noqa: BLE001
      raise SinkFailed(f"Failed uploading {self._location}: {exc}") from exc
    finally:
      await self.abort()
    return self._location

  async def abort(self) -> None:
    if self._closed:
      return
    self._closed = True
    self._spool.close()


class GcsArtifactSink:
  """Thin wrapper over GCS and emulator access for artifact upload/download."""

  def __init__(self, settings: Settings, client: storage.Client | None = None) -> None:
    self._bucket_name = settings.artifact_bucket
    self._storage_host = settings.gcs_storage_host
    if client is not None:
      self._client = client
    # Ensure emulator endpoint is visible to the SDK in local development.
    elif self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["GCS_STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._client = storage.Client(project=settings.gcp_project_id)

  @property
  def bucket_name(self) -> str:
    """Return the bucket artifacts are written to."""
    return self._bucket_name

  async def ensure_bucket(self) -> None:
    """Create the bucket when missing in local/dev flows."""
    # Keep production startup side-effect free; only auto-create in emulator mode.
    if not self._storage_host:
      return
    bucket = self._client.bucket(self._bucket_name)

    def _create_if_missing() -> None:
      if not bucket.exists(client=self._client):
        self._client.create_bucket(bucket)

    await run_in_threadpool(_create_if_missing)

  async def open_writer(self, key: str) -> GcsArtifactWriter:
    blob = self._client.bucket(self._bucket_name).blob(key)
    return GcsArtifactWriter(blob, f"gs://{self._bucket_name}/{key}")

  async def exists(self, key: str) -> bool:
    blob = self._client.bucket(self._bucket_name).blob(key)
    return bool(await run_in_threadpool(blob.exists))

  async def read(self, key: str) -> bytes:
    blob = self._client.bucket(self._bucket_name).blob(key)
    return await run_in_threadpool(blob.download_as_bytes)


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so the SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
