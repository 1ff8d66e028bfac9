"""Utility helpers."""

from .clock import Clock, ManualClock, Scheduler, SystemClock, ThreadingScheduler

__all__ = ["Clock", "ManualClock", "Scheduler", "SystemClock", "ThreadingScheduler"]
