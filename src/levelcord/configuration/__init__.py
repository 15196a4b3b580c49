"""
Configuration management for Levelcord.

- **app_configuration.py**: YAML configuration loader for global settings such
  as the database path, cache lifetimes and background task intervals.
  Falls back to defaults on missing or malformed config files.
"""
