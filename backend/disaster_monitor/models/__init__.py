"""
Document store access for the disaster monitor.
"""

from .base import DocumentStore, init_firebase, BATCH_LIMIT

__all__ = [
    "DocumentStore",
    "init_firebase",
    "BATCH_LIMIT",
]
