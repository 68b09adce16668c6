"""Snapshot reconciliation and poll scheduling."""

from listing_sync.sync.reconcile import reconcile
from listing_sync.sync.scheduler import PollScheduler, SchedulerState

__all__ = ["PollScheduler", "SchedulerState", "reconcile"]
