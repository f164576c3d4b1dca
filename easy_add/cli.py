"""Command-line interface for easy-add."""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from . import __commit__, __version__
from .config import DEFAULT_DESTINATION, ExtractConfig, parse_var_bindings
from .errors import EasyAddError
from .pipeline import run
from .transport import DEFAULT_TIMEOUT

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s", stream=sys.stdout)

logger = logging.getLogger(__name__)


def _parse_vars(ctx: click.Context, param: click.Parameter, value: tuple[str, ...]) -> dict[str, str]:
    try:
        return parse_var_bindings(value)
    except ValueError as e:
        raise click.BadParameter(str(e), ctx=ctx, param=param)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--from", "from_template", required=True, metavar="URL", envvar="EASY_ADD_FROM",
    help="URL of a tar.gz or zip archive to download. May contain {{.name}} references to 'var' entries.",
)
@click.option(
    "--file", "file_template", required=True, metavar="PATH", envvar="EASY_ADD_FILE",
    help="The path to the executable to extract within the archive. May contain {{.name}} references.",
)
@click.option(
    "--to", "destination", default=str(DEFAULT_DESTINATION), show_default=True, envvar="EASY_ADD_TO",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory where the executable will be placed.",
)
@click.option(
    "--var", "variables", multiple=True, metavar="NAME=VALUE", envvar="EASY_ADD_VAR", callback=_parse_vars,
    help="Sets a variable that can be referenced in 'from' and 'file'. Repeatable.",
)
@click.option("--mkdirs", is_flag=True, envvar="EASY_ADD_MKDIRS", help="Create the directory given by --to.")
@click.option(
    "--ca-cert", "ca_files", multiple=True, metavar="PEM",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Additional CA certificate bundle to trust. Repeatable.",
)
@click.option(
    "--timeout", default=DEFAULT_TIMEOUT, show_default=True, type=click.FloatRange(min=0),
    help="Connect/read timeout in seconds, 0 waits forever.",
)
@click.option("--debug/--no-debug", default=False, help="Verbose logging.")
@click.version_option(__version__, "--version", message=f"version=%(version)s, commit={__commit__}")
def cli(
    from_template: str,
    file_template: str,
    destination: Path,
    variables: dict[str, str],
    mkdirs: bool,
    ca_files: tuple[Path, ...],
    timeout: float,
    debug: bool,
):
    """Download an archive and extract a single executable from it."""
    logging.getLogger("easy_add").setLevel(logging.DEBUG if debug else logging.INFO)

    config = ExtractConfig(
        from_template=from_template,
        file_template=file_template,
        destination=destination,
        variables=variables,
        mkdirs=mkdirs,
        ca_files=ca_files,
        timeout=timeout or None,
    )
    try:
        run(config)
    except EasyAddError as e:
        logger.error("%s", e.message)
        logger.debug("Error context: %s", e.context, exc_info=True)
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
