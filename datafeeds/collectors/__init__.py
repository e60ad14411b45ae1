"""Collectors that turn the bot's tables into stream changes."""

from datafeeds.collectors.rest_poller import BackoffState, RestPoller

__all__ = [
    "BackoffState",
    "RestPoller",
]
