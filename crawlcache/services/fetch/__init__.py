"""
Fetch service: cache-aside orchestration of origin fetches and purges.
"""

from .orchestrator import FetchOrchestrator

__all__ = ["FetchOrchestrator"]
