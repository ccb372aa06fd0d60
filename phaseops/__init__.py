"""
PhaseOps - Fixed-horizon daily task orchestration.

This package maps the calendar onto an 18-day phase plan, runs the tasks
scheduled for the current day, persists a daily report and broadcasts live
status to dashboard observers.
"""

__version__ = "0.1.0"
