"""Parley, a terminal client for an AI chat service."""

__version__ = "1.0.0"
