"""Slack agent - routes Slack threads to Claude agent sessions."""

__version__ = "0.1.0"
