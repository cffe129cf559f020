"""Exception hierarchy for prism-switch.

All exceptions inherit from PrismError (single catch point).
Messages are written to be shown as-is: clear, actionable, no stack traces.
"""

from __future__ import annotations


class PrismError(Exception):
    """Base exception for all prism-switch errors."""


class ConfigReadError(PrismError):
    """settings.json could not be read or is not a JSON object."""


class ConfigWriteError(PrismError):
    """settings.json could not be written (backup restore was attempted)."""


class PermissionDeniedError(PrismError):
    """No usable grant to access the Claude settings directory."""


class ProviderNotFoundError(PrismError):
    """No stored provider matches the given id or name."""


class CatalogError(PrismError):
    """A provider template catalog could not be loaded or parsed."""


class StoreError(PrismError):
    """The provider store could not be persisted."""
