"""Alerting exceptions shared by the store, engine and CLI."""

from __future__ import annotations


class AlertError(Exception):
    """Base exception for alerting errors."""


class AlertValidationError(AlertError):
    """Invalid severity, status or alert id; raised before any mutation."""


class TransientStoreError(AlertError):
    """The alert store could not be reached or timed out (retryable)."""
