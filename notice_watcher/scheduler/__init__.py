"""Periodic pass scheduling."""

from .apsched_adapter import PASS_JOB_ID, APSchedulerAdapter

__all__ = ["APSchedulerAdapter", "PASS_JOB_ID"]
