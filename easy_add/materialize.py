"""Writing the extracted entry to its destination."""
from __future__ import annotations

import logging
import os
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .errors import MaterializeError

__all__ = ["ExtractedFile", "destination_path", "materialize"]

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ExtractedFile:
    path: Path
    size: int
    mode: int


def destination_path(destination_dir: Path | str, entry_path: str) -> Path:
    """``destination_dir`` joined with the base name of the in-archive path."""
    name = posixpath.basename(entry_path)
    if not name or name in (".", ".."):
        raise MaterializeError(
            f"entry path {entry_path!r} has no file name to write",
            context={"entry": entry_path},
        )
    return Path(destination_dir) / name


def materialize(reader: BinaryIO, mode: int, entry_path: str, destination_dir: Path | str) -> ExtractedFile:
    """Copy *reader* into the destination directory and apply *mode*.

    The destination directory must already exist.  An existing file is
    overwritten in place; a failure part way leaves a partial file behind.
    Errors raised while reading *reader* propagate unchanged.
    """
    out_path = destination_path(destination_dir, entry_path)
    try:
        out = open(out_path, "wb")
    except OSError as e:
        raise _write_error(out_path, entry_path, "unable to create destination file", e) from e

    written = 0
    with out:
        while True:
            # read errors belong to the archive, only writes map to MaterializeError
            chunk = reader.read(_CHUNK_SIZE)
            if not chunk:
                break
            try:
                out.write(chunk)
            except OSError as e:
                raise _write_error(out_path, entry_path, "unable to copy extracted file content", e) from e
            written += len(chunk)
        try:
            out.flush()
        except OSError as e:
            raise _write_error(out_path, entry_path, "unable to copy extracted file content", e) from e

    try:
        # after writing, so neither umask nor a pre-existing file decides the mode
        os.chmod(out_path, mode)
    except OSError as e:
        raise _write_error(out_path, entry_path, "unable to set file mode", e) from e

    logger.debug("Wrote %d bytes to %s (mode %o)", written, out_path, mode)
    return ExtractedFile(path=out_path, size=written, mode=mode)


def _write_error(out_path: Path, entry_path: str, what: str, cause: OSError) -> MaterializeError:
    return MaterializeError(
        f"{what} {out_path}: {cause}",
        context={"path": str(out_path), "entry": entry_path},
    )
