"""One invocation: resolve, classify, fetch, extract, write.

Steps run strictly in that order with no retries; the first error ends the
run.
"""
from __future__ import annotations

import contextlib
import logging
import os
from dataclasses import dataclass

import requests

from .archive_extract import open_entry
from .archive_types import ArchiveKind, classify
from .config import ExtractConfig
from .errors import EntryNotFoundError, FormatError, MaterializeError, TemplateError
from .materialize import ExtractedFile, materialize
from .transport import create_session, open_archive
from .variables import build_variables, substitute

__all__ = ["ResolvedTarget", "resolve_target", "run"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedTarget:
    url: str
    entry_path: str
    kind: ArchiveKind


def _evaluate(option: str, template: str, variables: dict[str, str]) -> str:
    try:
        return substitute(template, variables)
    except TemplateError as e:
        raise TemplateError(f"failed to evaluate '{option}': {e.message}", context=e.context) from e


def resolve_target(config: ExtractConfig) -> ResolvedTarget:
    """Substitute both templates and classify the resulting URL."""
    variables = build_variables(config.variables)
    logger.debug("Template variables: %s", variables)
    url = _evaluate("from", config.from_template, variables)
    entry_path = _evaluate("file", config.file_template, variables)
    return ResolvedTarget(url=url, entry_path=entry_path, kind=classify(url))


def _make_dirs(path: os.PathLike) -> None:
    try:
        os.makedirs(path, mode=0o755, exist_ok=True)
    except OSError as e:
        raise MaterializeError(f"unable to create directory {path}: {e}", context={"path": str(path)}) from e


def run(config: ExtractConfig, session: requests.Session | None = None) -> ExtractedFile:
    """Fetch the archive named by *config* and write its one requested entry.

    *session* defaults to a fresh session from
    :func:`easy_add.transport.create_session`, closed again on return.
    """
    target = resolve_target(config)

    if config.mkdirs:
        _make_dirs(config.destination)

    logger.info("Retrieving %s", target.url)
    if session is None:
        session_scope = create_session(config.ca_files)
    else:
        session_scope = contextlib.nullcontext(session)

    try:
        with session_scope as http, open_archive(target.url, http, timeout=config.timeout) as stream:
            with open_entry(target.kind, stream, target.entry_path) as (entry, reader):
                result = materialize(reader, entry.mode, target.entry_path, config.destination)
    except (EntryNotFoundError, FormatError) as e:
        # name the archive, the extractor only knows the stream
        raise type(e)(f"{e.message} from {target.url}", context={**e.context, "url": target.url}) from e

    logger.info("Extracted file to %s", result.path)
    return result
