"""
Background jobs.
"""

from .data_update_job import DataUpdateJob

__all__ = ["DataUpdateJob"]
