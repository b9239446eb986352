"""Failure taxonomy for the notification delivery engine.

None of these are fatal to the host process. Each one ends in either a
scheduled retry or a degraded continuation; they exist so call sites can
log and branch on a precise category instead of a bare ``Exception``.
"""
from __future__ import annotations


class NotifierError(Exception):
    """Base class for notifier failures."""


class ConfigInvalid(NotifierError):
    """A numeric setting could not be parsed; callers fall back to defaults."""


class TransportOpenFailed(NotifierError):
    """The socket could not be constructed or the connection attempt failed."""


class TransportSendFailed(NotifierError):
    """A frame could not be written to an open socket."""


class TransportClosed(NotifierError):
    """The peer closed the connection."""


class TransportError(NotifierError):
    """The transport reported an asynchronous protocol or I/O error."""


class AssetFetchFailed(NotifierError):
    """An icon download failed or returned no usable data."""
