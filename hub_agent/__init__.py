"""Conversational agent runtime for the Social Hub content scheduler."""

__version__ = "0.1.0"
