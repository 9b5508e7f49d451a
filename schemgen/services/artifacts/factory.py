from __future__ import annotations

from schemgen.config import Settings
from schemgen.services.artifacts.filesystem import FilesystemArtifactSink
from schemgen.services.artifacts.sink import ArtifactSink


def build_artifact_sink(settings: Settings) -> ArtifactSink:
  """Create the configured artifact sink."""
  if settings.artifact_backend == "gcs":
    from schemgen.services.artifacts.gcs import GcsArtifactSink

    return GcsArtifactSink(settings)
  return FilesystemArtifactSink(settings.artifact_dir)
