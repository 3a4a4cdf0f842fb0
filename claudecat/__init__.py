"""Caching, cost and burn-rate calculations and report rendering for Claude Code token usage."""

__version__ = "0.1.0"