"""
Persistence layer — in-process wellness log.

Quick start:
  from database import InMemoryWellnessLog
  log = InMemoryWellnessLog()
  await log.add_stress_log(7)
  snapshot = log.snapshot()
"""
from database.wellness_log import InMemoryWellnessLog

__all__ = ["InMemoryWellnessLog"]
