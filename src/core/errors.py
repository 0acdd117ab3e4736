"""Exceptions raised across the core and its adapters."""

from __future__ import annotations


class ScoutError(Exception):
    """Base class for scout errors."""


class ConfigError(ScoutError):
    """Invalid or missing configuration detected at startup."""


class DeliveryError(ScoutError):
    """The delivery sink could not send a notification."""


class InvalidButtonError(DeliveryError):
    """The notification was rejected because of its action buttons.

    Callers retry the same text without buttons.
    """
