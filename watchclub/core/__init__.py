"""Ambient concerns: settings and logging."""
