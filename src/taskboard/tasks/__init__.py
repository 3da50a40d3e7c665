"""
Task board subsystem.

Components:
- models.py: data structures (Task, Status, TimeEntry) + document mapping
- statuses.py: ordered workflow statuses and the in-progress / completed lookups
- time_tracking.py: time entries opened/closed by status transitions
- board.py: task state machine (optimistic commands + realtime reconciliation)
- formatting.py: duration and estimate display helpers
"""
