import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("schemgen.entrypoint")


def main() -> None:
  """Launch the service under uvicorn, bound to BIND/PORT."""
  host = os.getenv("BIND", "0.0.0.0")
  # The generator listens on 8080 by default.
  port = os.getenv("PORT", "8000")
  logger.info("Starting schemgen on %s:%s", host, port)
  # Use os.execvp to replace the current process with uvicorn.
  # This ensures signals (SIGTERM, etc.) are handled correctly by uvicorn.
  os.execvp("uvicorn", ["uvicorn", "schemgen.main:app", "--host", host, "--port", port, "--no-server-header"])


if __name__ == "__main__":
  main()
