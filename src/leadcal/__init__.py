"""Leadcal: lead-linked appointments on top of Google Calendar."""

__version__ = "0.1.0"
