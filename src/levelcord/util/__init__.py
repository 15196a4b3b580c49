"""
Utility functions and helpers for Levelcord.

- **logger.py**: Centralized logging configuration with colored console output,
  rotating file handlers and per-session log files. Uses prompt_toolkit for
  console output.

- **discord_utils.py**: Stateless Discord helpers such as author filtering and
  permission checks.
"""
