"""Download notification icons (sender avatars) for embedding."""
from __future__ import annotations

import logging
from typing import Callable, Optional

import requests
from requests import exceptions as requests_exceptions

from .errors import AssetFetchFailed
from .version import __version__

DEFAULT_USER_AGENT = f"OverlayNotifier/{__version__} icon-fetch"
MAX_ICON_BYTES = 1_048_576

FetchFn = Callable[[str, float], bytes]

_LOGGER = logging.getLogger("OverlayNotifier.IconFetch")


class IconFetcher:
    """Fetches image bytes over HTTP; every failure surfaces as :class:`AssetFetchFailed`."""

    def __init__(
        self,
        session_factory: Optional[Callable[[], requests.Session]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        max_bytes: int = MAX_ICON_BYTES,
    ) -> None:
        self._session_factory = session_factory or requests.Session
        self._user_agent = user_agent
        self._max_bytes = max_bytes

    def __call__(self, url: str, timeout: float = 5.0) -> bytes:
        return self.fetch(url, timeout)

    def fetch(self, url: str, timeout: float = 5.0) -> bytes:
        if not url:
            raise AssetFetchFailed("No icon URL supplied")
        session = self._create_session()
        response = None
        try:
            response = session.get(url, timeout=timeout)
            response.raise_for_status()
            data = response.content
        except requests_exceptions.RequestException as exc:
            raise AssetFetchFailed(f"Icon request failed: {exc}") from exc
        finally:
            if response is not None:
                response.close()
            session.close()
        if not data:
            raise AssetFetchFailed(f"Icon response from {url} was empty")
        if len(data) > self._max_bytes:
            raise AssetFetchFailed(f"Icon exceeds size limit ({len(data)} > {self._max_bytes} bytes)")
        return data

    def _create_session(self) -> requests.Session:
        session = self._session_factory()
        session.headers["User-Agent"] = self._user_agent
        return session


def fetch_icon_or_none(fetch: Optional[FetchFn], url: Optional[str], timeout: float) -> Optional[bytes]:
    """Run ``fetch`` and map any failure to ``None`` so delivery proceeds with the fallback icon."""
    if fetch is None or not url:
        return None
    try:
        return fetch(url, timeout)
    except AssetFetchFailed as exc:
        _LOGGER.info("Avatar fetch failed: %s", exc)
    except Exception as exc:
        _LOGGER.info("Avatar fetch failed: %s", AssetFetchFailed(str(exc)))
    return None
