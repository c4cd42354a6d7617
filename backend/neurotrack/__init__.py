"""
NeuroTrack Backend - Clinical Dashboard Services

This package provides the backend services for the NeuroTrack clinical
dashboard, including the background MRI scan-analysis processor, the
trigger endpoint that drives it, and the persistence layer it writes to.
"""

__version__ = "1.0.0"
__author__ = "NeuroTrack Team"
