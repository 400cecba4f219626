"""Flowchart documents for AI agent workflows."""

__version__ = "0.1.0"
