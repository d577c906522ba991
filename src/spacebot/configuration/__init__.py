"""
Configuration management for SpaceBot.

- **app_configuration.py**: YAML loader for global settings, read under a shared file lock.
- **automation_settings.py**: typed accessors for the ``automation`` section.
"""
