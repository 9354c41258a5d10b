"""Admin-only relay for externally hosted forms.

The upstream URL for each category lives only in server configuration. The
gateway fetches it and hands back status, content type and a chunk iterator;
nothing else from the upstream response reaches the client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping, Optional

import requests

from staff_portal.config import FORM_CATEGORIES
from staff_portal.errors import FormNotConfigured, UpstreamFetchFailure

LOGGER = logging.getLogger("staff_portal.forms")

CHUNK_SIZE = 16 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class FormResponse:
    status_code: int
    content_type: str
    chunks: Iterator[bytes]
    close: Callable[[], None]


class FormGateway:
    def __init__(
        self,
        urls: Mapping[str, str],
        *,
        timeout: float = 10.0,
        http: Optional[requests.Session] = None,
    ) -> None:
        self._urls = {category: urls.get(category, "") for category in FORM_CATEGORIES}
        self._timeout = timeout
        self._http = http or requests.Session()

    def configured(self) -> list:
        return [category for category, url in self._urls.items() if url]

    def fetch(self, category: str) -> FormResponse:
        url = self._urls.get(category)
        if not url:
            raise FormNotConfigured(category)
        try:
            upstream = self._http.get(url, stream=True, timeout=self._timeout)
        except requests.RequestException as exc:
            # exception text carries the URL; log the type only
            LOGGER.warning("Form fetch for %s failed: %s", category, type(exc).__name__)
            raise UpstreamFetchFailure(f"{category}: {type(exc).__name__}") from None
        LOGGER.info("Relaying %s form (upstream status %d)", category, upstream.status_code)
        closer = _UpstreamCloser(upstream)
        return FormResponse(
            status_code=upstream.status_code,
            content_type=upstream.headers.get("Content-Type", DEFAULT_CONTENT_TYPE),
            chunks=_relay(upstream, closer),
            close=closer,
        )


class _UpstreamCloser:
    """Closes the upstream response at most once."""

    def __init__(self, upstream: requests.Response) -> None:
        self._upstream = upstream
        self.closed = False

    def __call__(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._upstream.close()


def _relay(upstream: requests.Response, close: Callable[[], None]) -> Iterator[bytes]:
    # a body that fails mid-stream skips response background tasks
    try:
        yield from upstream.iter_content(chunk_size=CHUNK_SIZE)
    finally:
        close()
