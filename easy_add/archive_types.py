"""Archive kind detection from the source URL suffix."""
from __future__ import annotations

import enum
from urllib.parse import urlsplit

from .errors import UnsupportedFormatError

__all__ = ["ArchiveKind", "classify"]


class ArchiveKind(enum.Enum):
    TAR_GZIP = "tar.gz"
    ZIP = "zip"


_SUFFIXES = (
    (".tar.gz", ArchiveKind.TAR_GZIP),
    (".tgz", ArchiveKind.TAR_GZIP),
    (".zip", ArchiveKind.ZIP),
)


def classify(url: str) -> ArchiveKind:
    """Return the archive kind named by the suffix of *url*'s path.

    Matching is case-insensitive; query string and fragment are ignored.
    The archive content is never inspected.
    """
    path = urlsplit(url).path.lower()
    for suffix, kind in _SUFFIXES:
        if path.endswith(suffix):
            return kind
    raise UnsupportedFormatError(
        f"unsupported archive type for {url}: only tar-gzipped files with "
        "tar.gz or tgz suffix, or zipped files with zip suffix, are supported",
        context={"url": url},
    )
