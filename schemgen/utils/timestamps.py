"""UTC timestamp helpers shared by job persistence."""

from __future__ import annotations

import time
from datetime import datetime, timezone

DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> str:
  """Return the current UTC time formatted for job records."""
  return time.strftime(DATE_FORMAT, time.gmtime())


def parse_utc(value: str) -> datetime:
  """Parse a stamp produced by utc_now back into an aware datetime."""
  return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
