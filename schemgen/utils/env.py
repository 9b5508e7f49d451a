"""Loader for the service's local .env file."""

from __future__ import annotations

import os
from pathlib import Path

# Only variables the service reads are exported; anything else in the file is ignored.
ENV_PREFIXES = ("SCHEMGEN_", "GCP_", "FIREBASE_", "GCS_", "GOOGLE_")


def default_env_path() -> Path:
  """Return SCHEMGEN_ENV_FILE when set, else the .env at the repo root."""
  explicit = (os.getenv("SCHEMGEN_ENV_FILE") or "").strip()
  if explicit:
    return Path(explicit).expanduser()
  return Path(__file__).resolve().parents[2] / ".env"


def load_env_file(path: Path, *, override: bool = False) -> list[str]:
  """Export the service's settings from a .env file and return the keys that were set.

  Process environment wins unless override is True, so deployments are never
  shadowed by a stray local file.
  """
  if not path.is_file():
    return []

  loaded: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    key, value = _parse_line(raw_line)
    if not key or not key.startswith(ENV_PREFIXES):
      continue
    if not override and key in os.environ:
      continue
    os.environ[key] = value
    loaded.append(key)
  return loaded


def _parse_line(raw_line: str) -> tuple[str | None, str]:
  line = raw_line.strip()
  if not line or line.startswith("#"):
    return None, ""
  if line.startswith("export "):
    line = line[len("export ") :].lstrip()
  if "=" not in line:
    return None, ""
  key, value = line.split("=", 1)
  key = key.strip()
  value = value.strip()
  if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
    value = value[1:-1]
  return key or None, value
