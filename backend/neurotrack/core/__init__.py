"""Core configuration and utilities for NeuroTrack backend."""

from neurotrack.core.config import settings
from neurotrack.core.logging import get_logger, setup_logging

__all__ = ["settings", "setup_logging", "get_logger"]
