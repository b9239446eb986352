"""Release metadata for the overlay notifier."""
from __future__ import annotations

__version__ = "2.7.0"
