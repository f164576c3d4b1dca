"""
Extracting a single entry from a downloaded archive.

Supports:
* tar.gz archives, read strictly forward from the response stream
* zip archives, buffered first since the central directory sits at the end

Nothing but the requested entry is ever written anywhere.
"""
from __future__ import annotations

import contextlib
import functools
import gzip
import logging
import stat
import tarfile
import tempfile
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Iterator, Tuple

from .archive_types import ArchiveKind
from .errors import EntryNotFoundError, FormatError, MaterializeError

__all__ = [
    "ArchiveEntry",
    "DEFAULT_MODE",
    "extract",
    "open_entry",
]

logger = logging.getLogger(__name__)

# used when the archive records no usable permission bits
DEFAULT_MODE = 0o755

# zip archives up to this size stay in memory, larger ones spill to disk
ZIP_SPOOL_MAX_MEMORY = 32 * 1024 * 1024
_CHUNK_SIZE = 64 * 1024

_TAR_GZIP_ERRORS = (tarfile.TarError, gzip.BadGzipFile, zlib.error, EOFError)
_ZIP_ERRORS = (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError)


@dataclass(frozen=True)
class ArchiveEntry:
    """One file, directory or link record met while scanning an archive."""

    name: str
    mode: int
    size: int
    is_dir: bool = False
    is_link: bool = False
    opener: Callable[[], BinaryIO] = field(default=None, repr=False, compare=False)

    def open(self) -> BinaryIO:
        return self.opener()


def _effective_mode(mode: int) -> int:
    mode = stat.S_IMODE(mode) & 0o777
    return mode or DEFAULT_MODE


# ---------------------------------------------------------------------------
# tar.gz
# ---------------------------------------------------------------------------

@contextlib.contextmanager
def _scan_tar_gzip(stream: BinaryIO) -> Iterator[Iterator[ArchiveEntry]]:
    # GzipFile rather than tarfile's own "r|gz" so a truncated body raises
    # instead of reading as a short archive
    with gzip.GzipFile(fileobj=stream, mode="rb") as gz, tarfile.open(fileobj=gz, mode="r|") as tf:
        yield (
            ArchiveEntry(
                name=member.name,
                mode=_effective_mode(member.mode),
                size=member.size,
                is_dir=member.isdir(),
                is_link=member.issym() or member.islnk(),
                opener=functools.partial(tf.extractfile, member),
            )
            for member in tf
        )


# ---------------------------------------------------------------------------
# zip
# ---------------------------------------------------------------------------

def _zip_mode(info: zipfile.ZipInfo) -> int:
    """Unix permission bits of *info*, or DEFAULT_MODE when none are recorded."""
    if info.create_system != 3:  # not written on a Unix host
        return DEFAULT_MODE
    return _effective_mode(info.external_attr >> 16)


def _zip_name(info: zipfile.ZipInfo) -> str:
    """Entry name as stored, read as UTF-8 even without the UTF-8 flag.

    zipfile decodes unflagged names as cp437, but most tools that omit the
    flag still write UTF-8 bytes.
    """
    if info.flag_bits & 0x800:
        return info.filename
    try:
        return info.filename.encode("cp437").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return info.filename


def _zip_opener(zf: zipfile.ZipFile, info: zipfile.ZipInfo) -> BinaryIO:
    if info.flag_bits & 0x1:
        raise FormatError(f"zip entry {info.filename} is encrypted", context={"entry": info.filename})
    return zf.open(info)


def _spool(stream: BinaryIO, spool: BinaryIO) -> None:
    while True:
        # read errors belong to the transport, only the buffer writes are ours
        chunk = stream.read(_CHUNK_SIZE)
        if not chunk:
            return
        try:
            spool.write(chunk)
        except OSError as e:
            raise MaterializeError(f"unable to buffer zip archive: {e}") from e


@contextlib.contextmanager
def _scan_zip(stream: BinaryIO) -> Iterator[Iterator[ArchiveEntry]]:
    with tempfile.SpooledTemporaryFile(max_size=ZIP_SPOOL_MAX_MEMORY) as spool:
        _spool(stream, spool)
        logger.debug("Buffered %d bytes of zip archive", spool.tell())
        spool.seek(0)
        with zipfile.ZipFile(spool) as zf:
            yield (
                ArchiveEntry(
                    name=_zip_name(info),
                    mode=_zip_mode(info),
                    size=info.file_size,
                    is_dir=info.is_dir(),
                    is_link=info.create_system == 3 and stat.S_ISLNK(info.external_attr >> 16),
                    opener=functools.partial(_zip_opener, zf, info),
                )
                for info in zf.infolist()
            )


_STRATEGIES = {
    ArchiveKind.TAR_GZIP: (_scan_tar_gzip, _TAR_GZIP_ERRORS),
    ArchiveKind.ZIP: (_scan_zip, _ZIP_ERRORS),
}


def _first_match(entries: Iterator[ArchiveEntry], entry_path: str) -> ArchiveEntry | None:
    for entry in entries:
        if entry.name != entry_path:
            continue
        if entry.is_dir or entry.is_link:
            logger.debug("Skipping %s, not a regular file", entry.name)
            continue
        return entry
    return None


# ---------------------------------------------------------------------------
# public API
# ---------------------------------------------------------------------------

@contextlib.contextmanager
def open_entry(kind: ArchiveKind, stream: BinaryIO, entry_path: str) -> Iterator[Tuple[ArchiveEntry, BinaryIO]]:
    """Yield ``(entry, reader)`` for the first entry named exactly *entry_path*.

    *stream* is only read forward.  For tar.gz archives scanning stops at the
    match, the rest of the stream is left unread.

    Raises :class:`EntryNotFoundError` when no regular file has that name and
    :class:`FormatError` when the archive cannot be decoded, including
    failures met while the caller reads the entry.
    """
    scan, format_errors = _STRATEGIES[kind]
    try:
        with scan(stream) as entries:
            entry = _first_match(entries, entry_path)
            if entry is None:
                raise EntryNotFoundError(
                    f"unable to find {entry_path} in {kind.value} archive",
                    context={"entry": entry_path},
                )
            logger.debug("Found %s (%d bytes, mode %o)", entry.name, entry.size, entry.mode)
            with entry.open() as reader:
                yield entry, reader
    except format_errors as e:
        raise FormatError(
            f"failed to read {kind.value} archive content: {e}",
            context={"entry": entry_path},
        ) from e


def extract(kind: ArchiveKind, stream: BinaryIO, entry_path: str) -> Tuple[bytes, int]:
    """Return content and permission bits of *entry_path* inside the archive."""
    with open_entry(kind, stream, entry_path) as (entry, reader):
        return reader.read(), entry.mode
