"""Task manager — periodic background jobs.

Provides ``TaskManager`` for:
- Expired claim sweeping (evict pending claims past their TTL)
- Metrics calculation (claim counts and store health for Prometheus gauges)
"""

from __future__ import annotations

from magic_link.taskmanager.manager import CronJob, JobState, TaskManager

__all__ = ["CronJob", "JobState", "TaskManager"]
