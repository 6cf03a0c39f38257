"""Scheduler module for deferred and periodic background work.

Provides the ResourceReaper for deferred artifact deletion, the
SystemScheduler for periodic maintenance, and the session sweep task.
"""

from songfetch.scheduler.reaper import ResourceReaper, ScheduledDeletion
from songfetch.scheduler.session_sweep_task import session_sweep_task
from songfetch.scheduler.system_scheduler import SystemScheduler

__all__ = [
    "ResourceReaper",
    "ScheduledDeletion",
    "SystemScheduler",
    "session_sweep_task",
]
