"""Asynchronous schematic generation jobs: intake, dispatch, streamed artifact storage."""

__version__ = "0.1.0"
