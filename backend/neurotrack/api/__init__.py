"""HTTP API for NeuroTrack."""
