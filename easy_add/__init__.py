"""easy-add - pull a single executable out of a remote release archive.

This package provides:
    • pipeline.run – download, extract and install one archive entry.
    • archive_extract.open_entry – stream one entry out of a tar.gz or zip body.
    • variables.substitute – ``{{.name}}`` templates for URLs and entry paths.
    • CLI under easy_add.cli (Click).

The archive is never unpacked to disk; only the requested entry is written.
"""

__version__ = "0.1.0"
__commit__ = "HEAD"

__all__ = [
    "ArchiveKind",
    "EasyAddError",
    "ExtractConfig",
    "extract",
    "open_entry",
    "run",
    "substitute",
]

from .archive_extract import extract, open_entry  # noqa: E402
from .archive_types import ArchiveKind  # noqa: E402
from .config import ExtractConfig  # noqa: E402
from .errors import EasyAddError  # noqa: E402
from .pipeline import run  # noqa: E402
from .variables import substitute  # noqa: E402
