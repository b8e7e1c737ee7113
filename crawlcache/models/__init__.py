"""
API request models.
"""

from .requests import FetchRequest, PurgeRequest, parse_request

__all__ = ["FetchRequest", "PurgeRequest", "parse_request"]
