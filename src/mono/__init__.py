"""Mono API: gamification, budget alerts and push notifications."""

__version__ = "0.1.0"
