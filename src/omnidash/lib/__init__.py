"""Shared library code for omnidash.

- errors: error codes and exception classes (EnumCoreErrorCode, OnexError)
- notification_bus: in-process typed notification registry

Usage:
    from omnidash.lib.errors import EnumCoreErrorCode, OnexError
    from omnidash.lib.notification_bus import NotificationBus
"""

from omnidash.lib import errors, notification_bus

__all__ = [
    "errors",
    "notification_bus",
]
