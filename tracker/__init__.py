"""
Habit and task tracker.

The package provides a FastAPI service persisting habits and tasks as flat
JSON files, plus a client controller that talks to the service or keeps its
records in a local key-value store.
"""
