"""HTTP retrieval of archives.

TLS verification trusts the platform's default roots plus the Mozilla CA
bundle shipped with ``certifi``.  Minimal container base images often lack a
populated system trust store, and the bundled roots are what lets downloads
from code-hosting CDNs succeed there anyway.
"""
from __future__ import annotations

import contextlib
import io
import logging
import os
import ssl
from pathlib import Path
from typing import Iterator, Sequence

import certifi
import requests
import urllib3.exceptions
from requests.adapters import HTTPAdapter

from . import __version__
from .errors import TransportError

__all__ = [
    "DEFAULT_TIMEOUT",
    "build_ssl_context",
    "create_session",
    "open_archive",
]

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
USER_AGENT = f"easy-add/{__version__}"

_CHUNK_SIZE = 64 * 1024


def build_ssl_context(extra_ca_files: Sequence[Path | str] = ()) -> ssl.SSLContext:
    """Create a verifying client context with the augmented trust store."""
    context = ssl.create_default_context()

    paths = ssl.get_default_verify_paths()
    if not any(p and os.path.exists(p) for p in (paths.cafile, paths.capath)):
        logger.warning("No system trust store found; relying on bundled CA certificates")

    for ca_file in (certifi.where(), *extra_ca_files):
        try:
            context.load_verify_locations(cafile=str(ca_file))
        except (OSError, ssl.SSLError) as e:
            raise TransportError(
                f"unable to add CA certificates from {ca_file}: {e}",
                context={"ca_file": str(ca_file)},
            ) from e
        logger.debug("Loaded CA certificates from %s", ca_file)
    return context


class TrustStoreAdapter(HTTPAdapter):
    """HTTPAdapter that verifies servers against a prepared SSL context."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        # set before super().__init__, which builds the pool manager
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args, **kwargs):
        kwargs["ssl_context"] = self.ssl_context
        return super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, proxy, **proxy_kwargs):
        proxy_kwargs["ssl_context"] = self.ssl_context
        return super().proxy_manager_for(proxy, **proxy_kwargs)


def create_session(extra_ca_files: Sequence[Path | str] = ()) -> requests.Session:
    """Return a session whose HTTPS connections use :func:`build_ssl_context`."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    session.mount("https://", TrustStoreAdapter(build_ssl_context(extra_ca_files)))
    return session


class ResponseStream(io.RawIOBase):
    """Forward-only binary view of a streamed response body.

    Read failures of the underlying connection are reported as
    :class:`TransportError` so they are not mistaken for a corrupt archive.
    """

    def __init__(self, response: requests.Response):
        self._response = response
        self._raw = response.raw
        self._raw.decode_content = True

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        try:
            data = self._raw.read(len(buffer))
        except (urllib3.exceptions.HTTPError, requests.RequestException, OSError) as e:
            raise TransportError(
                f"failed reading archive from {self._response.url}: {e}",
                context={"url": self._response.url},
            ) from e
        n = len(data)
        buffer[:n] = data
        return n


@contextlib.contextmanager
def open_archive(
    url: str,
    session: requests.Session,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
) -> Iterator[io.BufferedReader]:
    """Yield the body of *url* as a readable binary stream.

    A non-2xx status raises :class:`TransportError` without reading the body.
    The response is released when the block exits, whether or not the body
    was consumed.
    """
    try:
        response = session.get(url, stream=True, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(f"failed to retrieve {url}: {e}", context={"url": url}) from e

    with response:
        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"failed to retrieve archive {url}: {response.status_code} {response.reason}",
                context={"url": url},
                status=response.status_code,
            )
        logger.debug(
            "Response %s %s (Content-Length: %s)",
            response.status_code,
            response.reason,
            response.headers.get("Content-Length", "unknown"),
        )
        yield io.BufferedReader(ResponseStream(response), buffer_size=_CHUNK_SIZE)
