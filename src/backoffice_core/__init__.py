"""Consulting back-office core: timecards, benchmarks, reporting, helpdesk and collaboration."""

__version__ = "1.0.0"
