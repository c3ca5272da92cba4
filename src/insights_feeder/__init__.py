"""Idempotent batch feeder for the meeting insights agent."""

__version__ = "0.1.0"
