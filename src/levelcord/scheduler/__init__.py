"""
Background task helpers.

- **periodic_task.py**: Runs an async callable on a fixed interval until shut
  down. Used for the write-behind flush and the XP cache sweep.
"""
