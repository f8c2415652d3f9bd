"""Scheduling adapters."""

from .apsched_adapter import CLEANUP_JOB_ID, EXTRACTION_JOB_ID, APSchedulerAdapter

__all__ = ["APSchedulerAdapter", "CLEANUP_JOB_ID", "EXTRACTION_JOB_ID"]
