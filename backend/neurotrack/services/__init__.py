"""Services module for NeuroTrack."""

from neurotrack.services.blob import BlobFetcher
from neurotrack.services.store import ScanStore

__all__ = ["ScanStore", "BlobFetcher"]
