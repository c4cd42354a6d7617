"""API v1 endpoints."""

from neurotrack.api.v1.endpoints import cron, health

__all__ = ["cron", "health"]
