"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from schemgen.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_JOB_STORE_BACKENDS = {"firestore", "memory"}
_ARTIFACT_BACKENDS = {"gcs", "filesystem"}
_TASK_PROVIDERS = {"gcp", "local-http"}
_GENERATION_AUTH_MODES = {"none", "id-token"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the schematic generation service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  max_prompt_chars: int | None
  gcp_project_id: str | None
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  job_store_backend: str
  jobs_collection: str
  orphan_horizon_seconds: int
  artifact_backend: str
  artifact_bucket: str
  artifact_dir: str
  artifact_extension: str
  gcs_storage_host: str | None
  generation_endpoint_url: str
  generation_auth: str
  generation_timeout_seconds: float
  pipe_timeout_seconds: float
  task_service_provider: str
  cloud_tasks_queue_path: str | None
  base_url: str | None
  task_secret: str | None
  cloud_run_invoker_service_account: str | None

  @property
  def emulated(self) -> bool:
    """Return True when the generation service is called without identity tokens."""
    return self.generation_auth == "none"


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:3000",)

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("SCHEMGEN_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("SCHEMGEN_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_choice(name: str, raw: str | None, default: str, choices: set[str]) -> str:
  value = (raw or default).strip().lower()
  if value not in choices:
    raise ValueError(f"{name} must be one of: {', '.join(sorted(choices))}.")
  return value


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _optional_positive_int(name: str) -> int | None:
  raw = _optional_str(os.getenv(name))
  if raw is None:
    return None
  return _positive_int(name, raw)


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SCHEMGEN_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("SCHEMGEN_DEBUG"))

  log_max_bytes = _positive_int("SCHEMGEN_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("SCHEMGEN_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SCHEMGEN_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Any string is a valid prompt unless an operator opts into a length cap.
  max_prompt_chars = _optional_positive_int("SCHEMGEN_MAX_PROMPT_CHARS")
  orphan_horizon_seconds = _positive_int("SCHEMGEN_ORPHAN_HORIZON_SECONDS", "900")

  job_store_backend = _parse_choice("SCHEMGEN_JOB_STORE", os.getenv("SCHEMGEN_JOB_STORE"), "memory", _JOB_STORE_BACKENDS)
  artifact_backend = _parse_choice("SCHEMGEN_ARTIFACT_BACKEND", os.getenv("SCHEMGEN_ARTIFACT_BACKEND"), "filesystem", _ARTIFACT_BACKENDS)
  task_service_provider = _parse_choice("SCHEMGEN_TASK_SERVICE_PROVIDER", os.getenv("SCHEMGEN_TASK_SERVICE_PROVIDER"), "local-http", _TASK_PROVIDERS)
  generation_auth = _parse_choice("SCHEMGEN_GENERATION_AUTH", os.getenv("SCHEMGEN_GENERATION_AUTH"), "none", _GENERATION_AUTH_MODES)

  # The remote generator is addressed by a single URL; the prompt travels as a query parameter.
  generation_endpoint_url = (os.getenv("SCHEMGEN_GENERATION_ENDPOINT_URL") or "http://127.0.0.1:8080/generate").strip()

  artifact_extension = (os.getenv("SCHEMGEN_ARTIFACT_EXTENSION") or "schem").strip().lstrip(".")
  if not artifact_extension:
    raise ValueError("SCHEMGEN_ARTIFACT_EXTENSION must not be empty.")

  cloud_tasks_queue_path = _optional_str(os.getenv("SCHEMGEN_CLOUD_TASKS_QUEUE_PATH"))
  if task_service_provider == "gcp" and not cloud_tasks_queue_path:
    raise ValueError("SCHEMGEN_CLOUD_TASKS_QUEUE_PATH must be set when SCHEMGEN_TASK_SERVICE_PROVIDER=gcp.")

  # Both queues deliver to our own worker endpoint, which only accepts authenticated calls.
  base_url = _optional_str(os.getenv("SCHEMGEN_BASE_URL"))
  if not base_url:
    raise ValueError("SCHEMGEN_BASE_URL must be set so work items can reach the worker endpoint.")
  task_secret = _optional_str(os.getenv("SCHEMGEN_TASK_SECRET"))
  if not task_secret:
    raise ValueError("SCHEMGEN_TASK_SECRET must be set to authenticate work item deliveries.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("SCHEMGEN_ALLOWED_ORIGINS")),
    log_dir=(os.getenv("SCHEMGEN_LOG_DIR") or "./logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("SCHEMGEN_LOG_HTTP_4XX")),
    max_prompt_chars=max_prompt_chars,
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    job_store_backend=job_store_backend,
    jobs_collection=(os.getenv("SCHEMGEN_JOBS_COLLECTION") or "jobs").strip(),
    orphan_horizon_seconds=orphan_horizon_seconds,
    artifact_backend=artifact_backend,
    artifact_bucket=(os.getenv("SCHEMGEN_ARTIFACT_BUCKET") or "schemgen-artifacts").strip(),
    artifact_dir=(os.getenv("SCHEMGEN_ARTIFACT_DIR") or "./artifacts").strip(),
    artifact_extension=artifact_extension,
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    generation_endpoint_url=generation_endpoint_url,
    generation_auth=generation_auth,
    generation_timeout_seconds=_positive_float("SCHEMGEN_GENERATION_TIMEOUT_SECONDS", "60"),
    pipe_timeout_seconds=_positive_float("SCHEMGEN_PIPE_TIMEOUT_SECONDS", "600"),
    task_service_provider=task_service_provider,
    cloud_tasks_queue_path=cloud_tasks_queue_path,
    base_url=base_url,
    task_secret=task_secret,
    cloud_run_invoker_service_account=_optional_str(os.getenv("SCHEMGEN_CLOUD_RUN_INVOKER_SERVICE_ACCOUNT")),
  )


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
