"""
Core pipeline - reconciliation, job queues, scheduling and triggers.
"""

from .jobs import Job, JobQueue, JobStatus, RetryPolicy
from .reconciler import MarketReconciler, SyncReport, compute_trade_volume
from .scheduler import Scheduler, SchedulerConfig
from .triggers import (
    EVALUATION_JOB,
    EVALUATION_QUEUE,
    SYNC_JOB,
    SYNC_MARKET_JOB,
    SYNC_QUEUE,
    PipelineTriggers,
    TriggerAck,
)

__all__ = [
    "EVALUATION_JOB",
    "EVALUATION_QUEUE",
    "Job",
    "JobQueue",
    "JobStatus",
    "MarketReconciler",
    "PipelineTriggers",
    "RetryPolicy",
    "SYNC_JOB",
    "SYNC_MARKET_JOB",
    "SYNC_QUEUE",
    "Scheduler",
    "SchedulerConfig",
    "SyncReport",
    "TriggerAck",
    "compute_trade_volume",
]
