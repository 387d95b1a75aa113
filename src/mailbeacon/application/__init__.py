"""Application layer - polling, deduplication and fan-out."""

from mailbeacon.application.fanout import FanOutHub, SubscriberHandle
from mailbeacon.application.scheduler import PollScheduler, SchedulerStats
from mailbeacon.application.use_cases import CheckMailboxUseCase, CheckResult, DedupGate

__all__ = [
    "DedupGate",
    "CheckMailboxUseCase",
    "CheckResult",
    "FanOutHub",
    "SubscriberHandle",
    "PollScheduler",
    "SchedulerStats",
]
