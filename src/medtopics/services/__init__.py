"""Service layer for medtopics.

This module exports the main service entry points.
"""

from medtopics.services.backfill import BackfillService
from medtopics.services.ingestion import IngestionService
from medtopics.services.read_service import CacheKeys, TopicReadService
from medtopics.services.refresh import RefreshService

__all__ = [
    "BackfillService",
    "CacheKeys",
    "IngestionService",
    "RefreshService",
    "TopicReadService",
]
