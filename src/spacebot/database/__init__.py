"""
Database package for SpaceBot.

Public API:
    - Database: opens the connection, creates the schema, exposes the store
    - AutomationStore: automation rules and execution logs
    - TTLCache: short-lived query cache
"""
