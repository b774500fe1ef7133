"""Slack platform integration: text preprocessing, messenger and event routing."""
