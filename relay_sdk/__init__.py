"""Relay SDK - shared utilities for the orchestration engine."""

from .logging import get_logger

__all__ = ["get_logger"]
