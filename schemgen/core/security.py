import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from schemgen.config import Settings, get_settings

logger = logging.getLogger(__name__)


async def require_task_secret(
  settings: Annotated[Settings, Depends(get_settings)],
  authorization: Annotated[str | None, Header()] = None,
  x_schemgen_task_secret: Annotated[str | None, Header()] = None,
) -> None:
  """Guard internal endpoints with the shared task secret."""
  # Secure-by-default: internal task endpoints must be authenticated to avoid arbitrary job execution.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")

  # Cloud Tasks OIDC uses Authorization for Cloud Run invoker auth, so check the dedicated header first.
  shared_secret_valid = secrets.compare_digest((x_schemgen_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), f"Bearer {settings.task_secret}")
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to an internal task endpoint")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")
