"""Identifier utilities."""

from __future__ import annotations

import secrets
import string

# Firestore-style auto ids: 20 characters over a 62 symbol alphabet.
JOB_ID_LENGTH = 20


def generate_job_id() -> str:
  """Return a new job identifier."""
  return generate_nanoid(JOB_ID_LENGTH)


def generate_nanoid(size: int = 16) -> str:
  """Return a short non-sequential id suitable for public references."""
  alphabet = string.ascii_letters + string.digits
  return "".join(secrets.choice(alphabet) for _ in range(size))
