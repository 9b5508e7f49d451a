"""Local directory artifact sink for development runs."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO

from starlette.concurrency import run_in_threadpool

from schemgen.jobs.errors import SinkFailed
from schemgen.utils.ids import generate_nanoid

logger = logging.getLogger(__name__)


class FilesystemArtifactWriter:
  """Writes into a private part file and renames it over the target on commit."""

  def __init__(self, target: Path, part_path: Path, handle: BinaryIO) -> None:
    self._target = target
    self._part_path = part_path
    self._handle = handle
    self._closed = False

  async def write(self, chunk: bytes) -> None:
    try:
      await run_in_threadpool(self._handle.write, chunk)
    except OSError as exc:
      raise SinkFailed(f"Failed writing {self._target.name}: {exc}") from exc

  async def commit(self) -> str:
    def _publish() -> None:
      self._handle.flush()
      os.fsync(self._handle.fileno())
      self._handle.close()
      # os.replace is atomic on POSIX, so readers see either the old or the new artifact.
      os.replace(self._part_path, self._target)

    try:
      await run_in_threadpool(_publish)
    except OSError as exc:
      await self.abort()
      raise SinkFailed(f"Failed committing {self._target.name}: {exc}") from exc
    self._closed = True
    return str(self._target)

  async def abort(self) -> None:
    if self._closed:
      return
    self._closed = True

    def _discard() -> None:
      self._handle.close()
      self._part_path.unlink(missing_ok=True)

    try:
      await run_in_threadpool(_discard)
    except OSError as exc:
      logger.warning("Could not remove partial artifact %s: %s", self._part_path, exc)


class FilesystemArtifactSink:
  """Stores artifacts as files in a single directory."""

  def __init__(self, root: str | Path) -> None:
    self.root = Path(root).resolve()

  def _path(self, key: str) -> Path:
    # Keys are generated ids plus an extension; refuse anything that could escape the root.
    if not key or "/" in key or "\\" in key or key.startswith("."):
      raise SinkFailed(f"Invalid artifact key: {key!r}")
    return self.root / key

  async def open_writer(self, key: str) -> FilesystemArtifactWriter:
    target = self._path(key)
    # A unique part file per writer keeps concurrent redeliveries from interleaving bytes.
    part_path = self.root / f".{key}.{generate_nanoid(8)}.part"

    def _open() -> BinaryIO:
      self.root.mkdir(parents=True, exist_ok=True)
      return part_path.open("wb")

    try:
      handle = await run_in_threadpool(_open)
    except OSError as exc:
      raise SinkFailed(f"Failed opening artifact {key}: {exc}") from exc
    return FilesystemArtifactWriter(target, part_path, handle)

  async def exists(self, key: str) -> bool:
    return await run_in_threadpool(self._path(key).is_file)

  async def read(self, key: str) -> bytes:
    return await run_in_threadpool(self._path(key).read_bytes)
