"""Taskboard - project and work-item tracking backend."""

__version__ = "0.1.0"
