"""Medication dose scheduling and reminder-dispatch core."""

__version__ = "0.1.0"
