"""Incremental delivery of agent output to Slack."""

from slackagent.streaming.progress import ProgressReporter, status_text_for
from slackagent.streaming.relay import RelayStats, StreamingRelay, split_message

__all__ = [
    "ProgressReporter",
    "RelayStats",
    "StreamingRelay",
    "split_message",
    "status_text_for",
]
